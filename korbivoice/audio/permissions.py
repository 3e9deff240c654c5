"""Microphone permission handling."""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from rich.prompt import Confirm

logger = logging.getLogger(__name__)


class MicrophonePermission(Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


def ask_on_console() -> bool:
    """Ask the user for microphone access on the terminal."""
    return Confirm.ask("Darf korbivoice das Mikrofon verwenden?", default=True)


class PermissionGate:
    """Remembers the microphone decision and asks once if it is undetermined."""

    def __init__(
        self,
        status: MicrophonePermission = MicrophonePermission.UNDETERMINED,
        prompt: Optional[Callable[[], bool]] = None,
    ):
        """Initialize permission gate.

        Args:
            status: Known decision, if any
            prompt: Blocking callable returning True when access is granted;
                runs in a worker thread and may wait indefinitely
        """
        self.status = status
        self.prompt = prompt or ask_on_console
        self._lock = asyncio.Lock()

    async def ensure(self) -> bool:
        """Return True if recording is allowed, prompting when undetermined."""
        async with self._lock:
            if self.status is MicrophonePermission.UNDETERMINED:
                logger.info("Requesting microphone permission")
                granted = await asyncio.to_thread(self.prompt)
                self.status = MicrophonePermission.GRANTED if granted else MicrophonePermission.DENIED
                logger.info(f"Microphone permission {self.status.value}")
            return self.status is MicrophonePermission.GRANTED
