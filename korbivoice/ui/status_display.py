"""Rich console rendering of voice session state changes."""

import logging
from collections import deque
from typing import Deque, Optional

from rich.console import Console
from rich.panel import Panel

from ..models.state import VoicePhase, VoiceSessionState
from ..services.state_publisher import VoiceStatePublisher

logger = logging.getLogger(__name__)

PHASE_STYLES = {
    VoicePhase.IDLE: ("⏸️  Bereit", "dim"),
    VoicePhase.RECORDING: ("🔴 Aufnahme läuft", "bold red"),
    VoicePhase.UPLOADING: ("📤 Wird verarbeitet", "bold yellow"),
    VoicePhase.SUCCESS: ("✅ Erkannt", "bold green"),
    VoicePhase.FAILURE: ("❌ Fehler", "bold red"),
}

HISTORY_LIMIT = 50


class StatusDisplay:
    """Prints one line per state transition.

    Subscribes a bound method, so the display must be kept referenced while
    it should receive updates. Only the most recent transitions are kept
    in ``history``.
    """

    def __init__(self, console: Optional[Console] = None, history_limit: int = HISTORY_LIMIT):
        self.console = console or Console()
        self.history: Deque[VoiceSessionState] = deque(maxlen=history_limit)
        self._publisher: Optional[VoiceStatePublisher] = None

    def attach(self, publisher: VoiceStatePublisher) -> None:
        self._publisher = publisher
        publisher.subscribe(self.on_state)

    def detach(self) -> None:
        if self._publisher is not None:
            self._publisher.unsubscribe(self.on_state)
            self._publisher = None

    def on_state(self, state: VoiceSessionState) -> None:
        self.history.append(state)
        label, style = PHASE_STYLES[state.phase]
        self.console.print(label, style=style)

        if state.phase is VoicePhase.SUCCESS:
            self.console.print(Panel(state.transcript or "(kein Text)", title="📝 Transkript"))
        elif state.phase is VoicePhase.FAILURE:
            self.console.print(f"   {state.error_message}", style="red")
        elif state.phase is VoicePhase.IDLE and state.last_transcript:
            self.console.print(f"   Zuletzt: {state.last_transcript}", style="dim")
