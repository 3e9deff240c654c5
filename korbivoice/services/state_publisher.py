"""State publisher module for pub/sub voice state updates."""

import logging
import threading
import uuid
from typing import Callable, Optional

from pubsub import pub

from ..models.state import VoiceSessionState

logger = logging.getLogger(__name__)

StateListener = Callable[[VoiceSessionState], None]


class VoiceStatePublisher:
    """Holds the current VoiceSessionState and publishes every change.

    Listeners receive the new state as the ``state`` keyword on the pub/sub
    topic. pypubsub keeps weak references, so subscribers must stay alive
    for as long as they want updates.
    """

    def __init__(self, topic: Optional[str] = None):
        """Initialize state publisher.

        Args:
            topic: Pub/sub topic name for state updates; a private
                top-level topic when omitted
        """
        self.topic = topic or f"voice_state_{uuid.uuid4().hex}"
        self._state = VoiceSessionState.idle()
        self._lock = threading.RLock()
        logger.info(f"VoiceStatePublisher initialized with topic: {self.topic}")

    @property
    def state(self) -> VoiceSessionState:
        with self._lock:
            return self._state

    def publish(self, state: VoiceSessionState) -> None:
        """Replace the current state and notify subscribers.

        Update and notification happen under one lock, so listeners see
        transitions one at a time and in order.
        """
        with self._lock:
            previous = self._state
            self._state = state
            logger.info(f"Voice state: {previous.phase.value} -> {state.phase.value}")
            pub.sendMessage(self.topic, state=state)

    def subscribe(self, listener: StateListener) -> None:
        pub.subscribe(listener, self.topic)

    def unsubscribe(self, listener: StateListener) -> None:
        pub.unsubscribe(listener, self.topic)
