"""Logging for the installation: one rotating file per output root plus console."""
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FILENAME = "facestage.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# mediapipe and friends log through these; at DEBUG they flood the file every frame
NOISY_LOGGERS = ("absl", "PIL", "matplotlib")


def setup_logging(log_dir: str, console_level: int = logging.INFO) -> str:
    """Attach handlers to the ``facestage`` logger and return the log file path.

    Calling it again (tests, a second window) only adjusts the console level.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILENAME)

    app_logger = logging.getLogger("facestage")
    app_logger.setLevel(logging.DEBUG)

    console = [h for h in app_logger.handlers if getattr(h, "_facestage_console", False)]
    if console:
        console[0].setLevel(console_level)
        return log_file

    fmt = logging.Formatter(LOG_FORMAT)

    fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3,
                             encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(fmt)
    app_logger.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch._facestage_console = True
    app_logger.addHandler(ch)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.captureWarnings(True)

    app_logger.info("Logging to %s", log_file)
    return log_file
