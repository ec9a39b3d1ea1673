"""Application bootstrap."""
import argparse
import logging
import os
import sys

from PySide6.QtWidgets import QApplication

from facestage.core.camera import NullCamera, RetryPolicy, camera_present
from facestage.core.faces import MediapipeDetector
from facestage.core.session_store import SessionStore
from facestage.ui.main_window import MainWindow
from facestage.util.logging_util import setup_logging
from facestage.util.paths import default_output_root, get_db_path, get_log_dir
from facestage.workers.camera_worker import QtCamera

log = logging.getLogger("facestage.main")


def _parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="facestage",
        description="Consent-gated face compositing installation",
    )
    parser.add_argument("--output", default=default_output_root(),
                        help="Directory for saved pictures, recordings and logs")
    parser.add_argument("--camera", type=int, default=None,
                        help="Camera index (default: stored setting, 0)")
    parser.add_argument("--serial-port", default=None,
                        help="Button device port, or 'auto' for the first USB serial port")
    parser.add_argument("--avatar", action="store_true",
                        help="Avatar mode: never show or record the real face")
    parser.add_argument("--background", default=None,
                        help="Background image for the composed scene")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)

    output_root = os.path.abspath(os.path.expanduser(args.output))
    setup_logging(get_log_dir(output_root), logging.DEBUG if args.debug else logging.INFO)

    store = SessionStore(get_db_path(output_root))
    settings = store.load_settings()
    store.forget_missing_recordings()
    settings.output_root = output_root
    if args.camera is not None:
        settings.camera_index = args.camera
    if args.serial_port is not None:
        settings.serial_port = args.serial_port
    if args.avatar:
        settings.avatar_mode = True
    if args.background is not None:
        settings.background_path = args.background

    has_camera = camera_present(settings.camera_index)
    if not has_camera and not settings.avatar_mode:
        print(
            f"facestage: no camera found at index {settings.camera_index}. "
            "Connect a camera or start with --avatar.",
            file=sys.stderr,
        )
        store.close()
        return 2

    log.info("Starting FaceStage (output %s, camera %d, avatar %s)",
             output_root, settings.camera_index, settings.avatar_mode)

    app = QApplication(sys.argv)
    app.setApplicationName("FaceStage")
    app.setOrganizationName("FaceStage")

    if has_camera:
        policy = RetryPolicy(settings.retry_attempts, settings.retry_base_delay_s)
        camera = QtCamera(settings.camera_index, policy)
    else:
        camera = NullCamera()

    # Model download and load happen once here, never on the frame tick
    detector = MediapipeDetector()
    detector.load()

    window = MainWindow(settings, store, camera, detector)
    window.setWindowTitle("FaceStage")
    window.resize(1000, 760)
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
