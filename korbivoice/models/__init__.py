"""Data models for the korbivoice pipeline."""

from .audio import (
    AudioStats,
    CapturedAudio,
    RecordingFormat,
    STANDARD_FORMAT,
    COMPACT_FORMAT,
    FORMAT_PRESETS,
)
from .session import RecordingSession
from .state import VoicePhase, VoiceSessionState
from .upload import SuggestedItem, UploadResult, WebhookItem, WebhookResponse

__all__ = [
    "AudioStats",
    "CapturedAudio",
    "RecordingFormat",
    "STANDARD_FORMAT",
    "COMPACT_FORMAT",
    "FORMAT_PRESETS",
    "RecordingSession",
    "VoicePhase",
    "VoiceSessionState",
    # Webhook models
    "SuggestedItem",
    "UploadResult",
    "WebhookItem",
    "WebhookResponse",
]
