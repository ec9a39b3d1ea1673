"""Main window: live composed preview, control buttons and status line."""
import logging

import cv2
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QDialog,
)
from PySide6.QtCore import Qt, QTimer, Slot
from PySide6.QtGui import QImage, QPixmap

from facestage.core.camera import RetryPolicy
from facestage.core.controller import StageController
from facestage.core.events import Channel, EventKind, InputEvent, button_event, key_event
from facestage.core.models import Notice, Origin, SessionStatus, Settings
from facestage.core.session_store import SessionStore
from facestage.ui.dialogs import SettingsDialog
from facestage.workers.serial_worker import SerialWorker

log = logging.getLogger("facestage.main_window")

TICK_MS = 33


class MainWindow(QMainWindow):
    def __init__(self, settings: Settings, store: SessionStore, camera, detector):
        super().__init__()
        self.settings = settings
        self.store = store
        self.detector = detector
        self.serial_worker: SerialWorker | None = None

        self.controller = StageController(
            settings, camera, detector,
            session_log=store, on_notice=self._on_notice,
        )

        self._build_ui()
        self._connect_signals()

        self.controller.startup()
        self._start_serial()

        self.timer = QTimer(self)
        self.timer.timeout.connect(self._on_tick)
        self.timer.start(TICK_MS)

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)

        self.preview = QLabel("Press C to give consent")
        self.preview.setAlignment(Qt.AlignCenter)
        self.preview.setMinimumSize(640, 480)
        self.preview.setStyleSheet("background-color: #111; color: #ddd; font-size: 18px;")
        layout.addWidget(self.preview, stretch=1)

        self.state_label = QLabel()
        self.state_label.setStyleSheet("font-size: 13px; color: #555;")
        layout.addWidget(self.state_label)

        row = QHBoxLayout()
        self.consent_btn = QPushButton("Consent (C)")
        self.save_btn = QPushButton("Save (S)")
        self.confirm_btn = QPushButton("Keep (Y)")
        self.discard_btn = QPushButton("Discard (N)")
        self.record_btn = QPushButton("Record (R)")
        self.settings_btn = QPushButton("Settings")
        for btn in (self.consent_btn, self.save_btn, self.confirm_btn,
                    self.discard_btn, self.record_btn, self.settings_btn):
            btn.setFocusPolicy(Qt.NoFocus)
            row.addWidget(btn)
        layout.addLayout(row)

    def _connect_signals(self):
        self.consent_btn.clicked.connect(lambda: self._press("consent"))
        self.save_btn.clicked.connect(lambda: self._press("save"))
        self.confirm_btn.clicked.connect(lambda: self._press("confirm"))
        self.discard_btn.clicked.connect(lambda: self._press("discard"))
        self.record_btn.clicked.connect(lambda: self._press("record"))
        self.settings_btn.clicked.connect(self._show_settings)

    def _start_serial(self):
        if not self.settings.serial_port:
            log.info("No serial port configured, button device disabled")
            return
        policy = RetryPolicy(self.settings.retry_attempts, self.settings.retry_base_delay_s)
        self.serial_worker = SerialWorker(self.settings.serial_port, self.settings.serial_baud, policy)
        self.serial_worker.token_received.connect(self.controller.handle_token)
        self.serial_worker.status_changed.connect(self._on_serial_status)
        self.serial_worker.start()

    # ── Input ────────────────────────────────────────────

    def _press(self, name: str):
        self.controller.handle_input(button_event(name))

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Escape:
            self.controller.handle_input(InputEvent(EventKind.REVIEW_DISCARD, Channel.KEYBOARD))
            return
        ev = key_event(event.text())
        if ev is None:
            super().keyPressEvent(event)
            return
        self.controller.handle_input(ev)

    # ── Tick & rendering ─────────────────────────────────

    @Slot()
    def _on_tick(self):
        self.controller.tick()
        snap = self.controller.snapshot()
        frame = self.controller.capture.review.pixels if snap.review_open else self.controller.composed
        self._render(frame, snap.consent)
        self._update_state(snap)

    def _render(self, frame, consent: bool):
        if frame is None:
            self.preview.setPixmap(QPixmap())
            self.preview.setText("Camera starting..." if consent else "Press C to give consent")
            return
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        h, w = rgb.shape[:2]
        img = QImage(rgb.data, w, h, 3 * w, QImage.Format_RGB888).copy()
        pix = QPixmap.fromImage(img).scaled(
            self.preview.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation
        )
        self.preview.setPixmap(pix)

    def _update_state(self, snap):
        parts = ["Consent ON" if snap.consent else "Consent OFF"]
        if snap.hardware_failed:
            parts.append("Camera FAILED")
        elif snap.consent:
            parts.append(f"Camera {snap.camera.value}")
        parts.append("Face" if snap.face_present else "No face")
        if snap.review_open:
            source = "button device" if snap.review_origin == Origin.EXTERNAL else "screen"
            parts.append(f"Reviewing picture from {source}")
        if snap.session_status == SessionStatus.OPEN:
            parts.append(f"REC {snap.frames_written} frames")
        elif snap.session_status == SessionStatus.PENDING_REVIEW:
            parts.append(f"Keep recording? {snap.review_seconds_left:.0f}s")
        self.state_label.setText("  |  ".join(parts))

        reviewing = snap.review_open or snap.session_status == SessionStatus.PENDING_REVIEW
        self.confirm_btn.setEnabled(reviewing)
        self.discard_btn.setEnabled(reviewing)
        self.consent_btn.setText("Revoke consent (C)" if snap.consent else "Consent (C)")

    def _on_notice(self, notice: Notice):
        self.statusBar().showMessage(notice.message, 6000)

    @Slot(str)
    def _on_serial_status(self, status: str):
        if status == "failed":
            self.statusBar().showMessage("Button device unavailable, check the cable", 10000)

    # ── Settings ─────────────────────────────────────────

    @Slot()
    def _show_settings(self):
        dialog = SettingsDialog(self.settings, self)
        if dialog.exec() == QDialog.Accepted:
            dialog.apply_to(self.settings)
            self.store.save_settings(self.settings)
            log.info("Settings updated")

    # ── Cleanup ──────────────────────────────────────────

    def closeEvent(self, event):
        self.timer.stop()
        if self.serial_worker and self.serial_worker.isRunning():
            self.serial_worker.cancel()
            self.serial_worker.wait(2000)
        self.controller.shutdown()
        self.controller.camera.wait_idle(3000)
        if hasattr(self.detector, "close"):
            self.detector.close()
        self.store.close()
        event.accept()
