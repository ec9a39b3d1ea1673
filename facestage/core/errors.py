"""Error taxonomy for the capture/recording core."""


class FaceStageError(Exception):
    """Base class; every subclass is handled at the controller boundary."""

    user_message = "Something went wrong"

    def __init__(self, message: str = ""):
        super().__init__(message or self.user_message)


class NotReady(FaceStageError):
    user_message = "Camera is warming up, try again in a moment"


class ConsentRequired(FaceStageError):
    user_message = "Consent is required before anything can be saved"


class HardwareUnavailable(FaceStageError):
    user_message = "Camera unavailable, needs manual intervention"


class BackendUnavailable(FaceStageError):
    user_message = "Video encoder unavailable, recording still frames instead"


class StorageWriteFailure(FaceStageError):
    user_message = "Could not write to disk"


class ProtocolParseError(FaceStageError):
    user_message = "Unrecognized device token"
