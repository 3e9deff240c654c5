"""Exception hierarchy for the voice capture and upload pipeline.

All custom exceptions inherit from VoiceSessionError so callers can catch
every pipeline failure at once.

Hierarchy:
    VoiceSessionError (base)
    ├── PermissionDenied - microphone access refused
    ├── RecorderUnavailable - capture device missing/busy, or no active session
    │   └── SessionAlreadyActive - a second session was requested
    ├── UploadFailed - non-2xx status or network error
    ├── InvalidResponse - 2xx body that is not a usable webhook result
    └── ConfigError - missing or invalid configuration
"""

from typing import Optional


class VoiceSessionError(Exception):
    """Base exception for all voice session errors.

    Attributes:
        message: Technical description, meant for logs
        user_message: German text that can be shown to the user
    """

    default_user_message = "Es ist ein Fehler aufgetreten."

    def __init__(self, message: str, user_message: Optional[str] = None):
        self.message = message
        self.user_message = user_message or self.default_user_message
        super().__init__(message)


class PermissionDenied(VoiceSessionError):
    """Microphone access was refused by the user or the platform."""

    default_user_message = (
        "Zugriff auf das Mikrofon wurde verweigert. "
        "Bitte erlaube Aufnahmen in den Einstellungen."
    )


class RecorderUnavailable(VoiceSessionError):
    """The capture device could not be opened, or no recording is active."""

    default_user_message = "Die Aufnahme konnte nicht gestartet werden."


class SessionAlreadyActive(RecorderUnavailable):
    """A recording session is already running on this controller."""

    default_user_message = "Es läuft bereits eine Aufnahme."


class UploadFailed(VoiceSessionError):
    """Transport-level upload failure.

    Attributes:
        status_code: HTTP status if the server answered, else None
        original_error: Underlying network exception, if any
    """

    default_user_message = "Upload fehlgeschlagen"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.original_error = original_error
        super().__init__(message)


class InvalidResponse(VoiceSessionError):
    """The webhook answered 2xx but the body is not a successful result."""

    default_user_message = "Unbekannter Fehler"


class ConfigError(VoiceSessionError):
    """Required configuration is missing or invalid."""

    default_user_message = "Die Konfiguration ist unvollständig."
