"""Detection of the webhook's "done" completion signal.

The webhook backend does not answer with one fixed shape: completion may
arrive as a JSON object with one of several status-like fields, or as a
bare ``done`` text body. Both are accepted.
"""

import asyncio
import json
import logging
from typing import Optional

from ..exceptions import UploadFailed
from .transport import UploadTransport

logger = logging.getLogger(__name__)


class CompletionInterpreter:
    """Decides whether a response body signals finished processing."""

    COMPLETION_FIELDS = ("status", "state", "result", "message", "taskStatus", "completion")
    DONE = "done"

    def is_complete(self, body: bytes) -> bool:
        """Return True if ``body`` carries the completion signal.

        Never raises; anything that cannot be decoded counts as not complete.
        """
        if not body:
            return False

        if self._structured_done(body):
            return True

        text = body.decode("utf-8", errors="replace").strip().lower()
        return text in (self.DONE, f'"{self.DONE}"')

    def _structured_done(self, body: bytes) -> bool:
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            return False

        if not isinstance(payload, dict):
            return False

        for key in self.COMPLETION_FIELDS:
            value = payload.get(key)
            if isinstance(value, str) and value.strip().lower() == self.DONE:
                return True
        return False


class CompletionPoller:
    """Polls a completion endpoint until the interpreter reports done."""

    def __init__(
        self,
        transport: UploadTransport,
        interpreter: Optional[CompletionInterpreter] = None,
        poll_interval: float = 0.6,
        max_polls: int = 80,
    ):
        self.transport = transport
        self.interpreter = interpreter or CompletionInterpreter()
        self.poll_interval = poll_interval
        self.max_polls = max_polls

    async def wait_until_done(self, url: str) -> Optional[bytes]:
        """Poll ``url`` until it signals completion.

        Returns:
            The body that carried the completion signal, or None when all
            polls were used up
        """
        for attempt in range(1, self.max_polls + 1):
            try:
                response = await self.transport.fetch(url)
            except UploadFailed as e:
                logger.warning(f"Completion poll {attempt}/{self.max_polls} failed: {e.message}")
            else:
                if response.is_success and self.interpreter.is_complete(response.body):
                    logger.info(f"Processing completed after {attempt} polls")
                    return response.body
                logger.debug(f"Completion poll {attempt}/{self.max_polls}: status {response.status}, not done")

            if attempt < self.max_polls:
                await asyncio.sleep(self.poll_interval)

        logger.warning(f"No completion signal after {self.max_polls} polls")
        return None
