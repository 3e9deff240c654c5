"""Session-related data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


@dataclass
class RecordingSession:
    """One voice-capture attempt, from start until upload or cancellation."""
    household_id: str
    list_id: str
    user_id: str
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    audio_path: Optional[Path] = None
