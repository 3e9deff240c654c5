"""Observable state of a voice session."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class VoicePhase(Enum):
    """Phase of the voice session state machine."""
    IDLE = "idle"
    RECORDING = "recording"
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class VoiceSessionState:
    """Snapshot published by the VoiceSessionController.

    Only one of ``started_at``, ``transcript`` and ``error_message`` is set,
    depending on the phase. ``last_transcript`` survives every transition so
    the last successful result can still be shown after returning to idle.
    """
    phase: VoicePhase = VoicePhase.IDLE
    started_at: Optional[datetime] = None
    transcript: Optional[str] = None
    error_message: Optional[str] = None
    last_transcript: Optional[str] = None

    @classmethod
    def idle(cls, last_transcript: Optional[str] = None) -> "VoiceSessionState":
        return cls(VoicePhase.IDLE, last_transcript=last_transcript)

    @classmethod
    def recording(cls, started_at: datetime,
                  last_transcript: Optional[str] = None) -> "VoiceSessionState":
        return cls(VoicePhase.RECORDING, started_at=started_at,
                   last_transcript=last_transcript)

    @classmethod
    def uploading(cls, last_transcript: Optional[str] = None) -> "VoiceSessionState":
        return cls(VoicePhase.UPLOADING, last_transcript=last_transcript)

    @classmethod
    def success(cls, transcript: str) -> "VoiceSessionState":
        return cls(VoicePhase.SUCCESS, transcript=transcript,
                   last_transcript=transcript)

    @classmethod
    def failure(cls, error_message: str,
                last_transcript: Optional[str] = None) -> "VoiceSessionState":
        return cls(VoicePhase.FAILURE, error_message=error_message,
                   last_transcript=last_transcript)

    @property
    def is_processing(self) -> bool:
        return self.phase is VoicePhase.UPLOADING

    @property
    def is_terminal(self) -> bool:
        return self.phase in (VoicePhase.SUCCESS, VoicePhase.FAILURE)

    @property
    def is_busy(self) -> bool:
        """True while a session holds the recorder or is uploading."""
        return self.phase in (VoicePhase.RECORDING, VoicePhase.UPLOADING)
