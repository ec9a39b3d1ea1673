"""Settings dialog for the installation operator."""
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QLabel, QSpinBox, QDoubleSpinBox, QCheckBox,
    QDialogButtonBox, QFormLayout, QGroupBox,
)

from facestage.core.models import Settings


class SettingsDialog(QDialog):
    def __init__(self, settings: Settings, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setMinimumWidth(380)

        layout = QVBoxLayout(self)

        # Retention group
        group = QGroupBox("Retention")
        form = QFormLayout()

        self._still_ttl_spin = QDoubleSpinBox()
        self._still_ttl_spin.setRange(0.1, 24 * 30)
        self._still_ttl_spin.setDecimals(1)
        self._still_ttl_spin.setSuffix(" hours")
        self._still_ttl_spin.setValue(settings.still_ttl_seconds / 3600.0)
        self._still_ttl_spin.setToolTip("Saved pictures are deleted after this long")
        form.addRow("Keep pictures for:", self._still_ttl_spin)

        self._rec_ttl_spin = QDoubleSpinBox()
        self._rec_ttl_spin.setRange(0.1, 24 * 30)
        self._rec_ttl_spin.setDecimals(1)
        self._rec_ttl_spin.setSuffix(" hours")
        self._rec_ttl_spin.setValue(settings.recording_ttl_seconds / 3600.0)
        form.addRow("Keep recordings for:", self._rec_ttl_spin)

        hint = QLabel("Expired files are removed at startup and every minute.")
        hint.setStyleSheet("font-size: 10px; color: #888;")
        form.addRow("", hint)

        group.setLayout(form)
        layout.addWidget(group)

        # Review group
        review_group = QGroupBox("Review")
        review_form = QFormLayout()

        self._review_spin = QSpinBox()
        self._review_spin.setRange(3, 120)
        self._review_spin.setSuffix(" s")
        self._review_spin.setValue(int(settings.review_timeout_ms / 1000))
        self._review_spin.setToolTip("Unanswered recordings are discarded after this long")
        review_form.addRow("Recording decision window:", self._review_spin)

        review_group.setLayout(review_form)
        layout.addWidget(review_group)

        # Recording group
        rec_group = QGroupBox("Recording")
        rec_form = QFormLayout()

        self._face_gate_checkbox = QCheckBox("Only record frames with a face")
        self._face_gate_checkbox.setChecked(settings.face_gate_enabled)
        rec_form.addRow(self._face_gate_checkbox)

        self._avatar_checkbox = QCheckBox("Avatar mode (never show the real face)")
        self._avatar_checkbox.setChecked(settings.avatar_mode)
        rec_form.addRow(self._avatar_checkbox)

        self._auto_checkbox = QCheckBox("Start and stop recording automatically")
        self._auto_checkbox.setChecked(settings.auto_record)
        self._auto_checkbox.setToolTip(
            f"Starts after {settings.auto_start_streak} frames with a face, "
            f"stops after {settings.auto_stop_streak} frames without one"
        )
        rec_form.addRow(self._auto_checkbox)

        rec_group.setLayout(rec_form)
        layout.addWidget(rec_group)

        # Buttons
        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def apply_to(self, settings: Settings):
        settings.still_ttl_seconds = self._still_ttl_spin.value() * 3600.0
        settings.recording_ttl_seconds = self._rec_ttl_spin.value() * 3600.0
        settings.review_timeout_ms = self._review_spin.value() * 1000
        settings.face_gate_enabled = self._face_gate_checkbox.isChecked()
        settings.avatar_mode = self._avatar_checkbox.isChecked()
        settings.auto_record = self._auto_checkbox.isChecked()
