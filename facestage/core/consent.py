"""Consent gate: the one flag that decides whether the camera runs and
whether anything may be persisted."""
import logging
from typing import Callable

from facestage.core.camera import Camera
from facestage.core.context import StageContext

log = logging.getLogger("facestage.consent")


class ConsentGate:
    def __init__(self, ctx: StageContext, camera: Camera):
        self._ctx = ctx
        self._camera = camera
        self._revocation_hooks: list[Callable[[], None]] = []

    @property
    def granted(self) -> bool:
        return self._ctx.consent.granted

    def on_revoke(self, hook: Callable[[], None]):
        """Register a callback run on ON -> OFF, before the camera is released."""
        self._revocation_hooks.append(hook)

    def toggle(self) -> bool:
        return self.set(not self.granted)

    def set(self, granted: bool) -> bool:
        """Apply a consent value. Returns True if the state changed."""
        with self._ctx.lock:
            if granted == self.granted:
                self._ctx.notify(
                    "Consent is already on" if granted else "Consent is already off"
                )
                return False

            self._ctx.consent.granted = granted
            if granted:
                log.info("Consent granted")
                self._camera.acquire()
                self._ctx.notify("Consent granted, camera starting")
            else:
                log.info("Consent revoked")
                for hook in self._revocation_hooks:
                    hook()
                self._camera.release()
                self._ctx.notify("Consent revoked, nothing was kept and the camera is off")
            return True
