import logging

import pytest

from facestage.util.logging_util import LOG_FILENAME, setup_logging


@pytest.fixture
def clean_logger():
    logger = logging.getLogger("facestage")
    saved = list(logger.handlers)
    for h in saved:
        logger.removeHandler(h)
    yield logger
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    for h in saved:
        logger.addHandler(h)


def test_setup_logging_writes_file(clean_logger, tmp_path):
    log_file = setup_logging(str(tmp_path / "logs"))
    assert log_file.endswith(LOG_FILENAME)

    logging.getLogger("facestage.capture").debug("Review discarded")
    for h in clean_logger.handlers:
        h.flush()
    with open(log_file, encoding="utf-8") as f:
        assert "facestage.capture: Review discarded" in f.read()
    assert logging.getLogger("absl").level == logging.WARNING


def test_setup_logging_is_idempotent(clean_logger, tmp_path):
    setup_logging(str(tmp_path))
    handlers = list(clean_logger.handlers)

    setup_logging(str(tmp_path), console_level=logging.DEBUG)
    assert clean_logger.handlers == handlers
    console = [h for h in handlers if not hasattr(h, "baseFilename")]
    assert console[0].level == logging.DEBUG
