"""Services layer for the voice session pipeline."""

from .state_publisher import VoiceStatePublisher
from .voice_session import AutoClearPolicy, VoiceSessionController

__all__ = [
    "AutoClearPolicy",
    "VoiceSessionController",
    "VoiceStatePublisher",
]
