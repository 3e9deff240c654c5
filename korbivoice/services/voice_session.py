"""Voice session controller: record, sign, upload, interpret."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from string import Formatter
from typing import Callable, Optional, Union

from ..audio.capture import AudioCapture
from ..audio.permissions import PermissionGate
from ..config import KorbiVoiceConfig
from ..exceptions import ConfigError, InvalidResponse, RecorderUnavailable, SessionAlreadyActive, UploadFailed
from ..models.audio import CapturedAudio
from ..models.session import RecordingSession
from ..models.state import VoicePhase, VoiceSessionState
from ..models.upload import UploadResult, WebhookResponse
from ..security.hashing import ContentHasher
from ..security.signer import RequestSigner, SignaturePayload
from ..storage.file_manager import RecordingFileManager
from ..upload.completion import CompletionInterpreter, CompletionPoller
from ..upload.encoder import UploadEncoder
from ..upload.transport import UploadTransport
from .state_publisher import StateListener, VoiceStatePublisher

logger = logging.getLogger(__name__)

UPLOAD_FAILED_MESSAGE = "Upload fehlgeschlagen"
CAPTURE_FAILED_MESSAGE = "Aufnahmefehler"
INVALID_RESPONSE_MESSAGE = "Ungültige Antwort vom Server"
UNKNOWN_ERROR_MESSAGE = "Unbekannter Fehler"
NOT_COMPLETED_MESSAGE = "Verarbeitung nicht abgeschlossen"

# Webhook statuses meaning "accepted, result follows later"
PENDING_STATUSES = frozenset({"accepted", "processing", "queued", "pending"})

# Placeholders a completion URL may contain
COMPLETION_URL_FIELDS = frozenset({"session_id", "nonce"})


@dataclass(frozen=True)
class AutoClearPolicy:
    """Delays after which a terminal state falls back to idle."""
    success_delay: float = 2.0
    error_delay: float = 4.0


def utc_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC without fractional seconds, e.g. 2024-01-01T12:00:00Z."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def validate_completion_url(url: str) -> str:
    """Reject completion URLs with placeholders other than session_id and nonce.

    Raises:
        ConfigError: If the URL is malformed or uses an unknown placeholder
    """
    try:
        fields = {name for _, name, _, _ in Formatter().parse(url) if name is not None}
    except ValueError as e:
        raise ConfigError(f"Malformed completion URL '{url}': {e}") from e

    unknown = fields - COMPLETION_URL_FIELDS
    if unknown:
        raise ConfigError(f"Completion URL '{url}' uses unknown placeholders: {sorted(unknown)}")
    return url


def _require_text(name: str, value: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"{name} is not valid UTF-8 text") from e
    return value


class VoiceSessionController:
    """Drives one voice session at a time and publishes its state.

    All state changes go through the VoiceStatePublisher and happen on the
    event loop that calls the controller.
    """

    def __init__(
        self,
        capture: AudioCapture,
        webhook_url: str,
        hmac_secret: Union[bytes, str],
        *,
        transport: Optional[UploadTransport] = None,
        signer: Optional[RequestSigner] = None,
        hasher: Optional[ContentHasher] = None,
        encoder: Optional[UploadEncoder] = None,
        interpreter: Optional[CompletionInterpreter] = None,
        completion_poller: Optional[CompletionPoller] = None,
        completion_url: Optional[str] = None,
        publisher: Optional[VoiceStatePublisher] = None,
        auto_clear: Optional[AutoClearPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        nonce_factory: Optional[Callable[[], str]] = None,
    ):
        """Initialize voice session controller.

        Args:
            capture: Microphone capture
            webhook_url: Endpoint receiving the signed upload
            hmac_secret: Shared secret for the request signature
            transport: HTTP transport; aiohttp-based by default
            completion_poller: Used together with ``completion_url`` when the
                webhook answers with a pending status
            completion_url: Polled endpoint; ``{session_id}`` and ``{nonce}``
                placeholders are filled in per upload
            publisher: State holder; one on a private topic by default
            auto_clear: Return to idle automatically after success/failure
            clock: Source of the signed timestamp
            nonce_factory: Source of the per-upload nonce
        """
        self.capture = capture
        self.webhook_url = webhook_url
        self.hmac_secret = hmac_secret.encode("utf-8") if isinstance(hmac_secret, str) else hmac_secret
        self.transport = transport or UploadTransport()
        self.signer = signer or RequestSigner()
        self.hasher = hasher or ContentHasher()
        self.encoder = encoder or UploadEncoder()
        self.interpreter = interpreter or CompletionInterpreter()
        self.completion_poller = completion_poller
        self.completion_url = validate_completion_url(completion_url) if completion_url else None
        self.publisher = publisher or VoiceStatePublisher()
        self.auto_clear = auto_clear
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.nonce_factory = nonce_factory or (lambda: str(uuid.uuid4()))

        self._session: Optional[RecordingSession] = None
        self._starting = False
        self._watch_task: Optional[asyncio.Task] = None
        self._auto_clear_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, config: KorbiVoiceConfig,
                    publisher: Optional[VoiceStatePublisher] = None) -> "VoiceSessionController":
        """Wire capture, transport and polling from a loaded configuration."""
        file_manager = RecordingFileManager(config.get_temp_directory())
        file_manager.cleanup_stale_recordings(float(config.get("storage.max_age_hours", 24)))
        capture = AudioCapture(
            file_manager=file_manager,
            permission_gate=PermissionGate(config.get_microphone_permission()),
            recording_format=config.get_recording_format(),
        )
        transport = UploadTransport(timeout_seconds=float(config.get("webhook.timeout_seconds", 30)))

        completion_url = config.get("webhook.completion_url")
        poller = None
        if completion_url:
            poller = CompletionPoller(
                transport,
                poll_interval=float(config.get("webhook.poll_interval_seconds", 0.6)),
                max_polls=int(config.get("webhook.max_polls", 80)),
            )

        auto_clear = None
        if config.get("voice.auto_clear", False):
            auto_clear = AutoClearPolicy(
                success_delay=float(config.get("voice.success_clear_seconds", 2.0)),
                error_delay=float(config.get("voice.error_clear_seconds", 4.0)),
            )

        return cls(
            capture,
            config.get_webhook_url(),
            config.get_hmac_secret(),
            transport=transport,
            completion_poller=poller,
            completion_url=completion_url,
            publisher=publisher,
            auto_clear=auto_clear,
        )

    @property
    def state(self) -> VoiceSessionState:
        return self.publisher.state

    @property
    def active_session(self) -> Optional[RecordingSession]:
        return self._session

    def subscribe(self, listener: StateListener) -> None:
        self.publisher.subscribe(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        self.publisher.unsubscribe(listener)

    async def start_recording(self, household_id: str, list_id: str, user_id: str) -> RecordingSession:
        """Start a new recording session.

        Raises:
            SessionAlreadyActive: If a session is starting, recording or uploading
            PermissionDenied: If microphone access is refused
            RecorderUnavailable: If the capture device cannot be opened
            ValueError: If an identifier is empty or not valid text
        """
        if self._starting or self._session is not None or self.state.is_busy:
            logger.warning(f"Rejected start while {self.state.phase.value}")
            raise SessionAlreadyActive("A recording session is already active")

        session = RecordingSession(
            household_id=_require_text("household_id", household_id),
            list_id=_require_text("list_id", list_id),
            user_id=_require_text("user_id", user_id),
        )

        self._starting = True
        try:
            session.audio_path = await self.capture.start(session_id=session.session_id)
        finally:
            self._starting = False

        self._cancel_auto_clear()
        self._session = session
        logger.info(f"Started recording session {session.session_id} "
                    f"(household={household_id}, list={list_id})")
        self.publisher.publish(VoiceSessionState.recording(session.started_at, self.state.last_transcript))
        self._watch_task = asyncio.create_task(self._watch_capture(session))
        return session

    async def stop_recording(self) -> VoiceSessionState:
        """Stop recording, upload the signed clip and return the final state.

        Upload problems end in a failure state. If the upload is interrupted
        (task cancellation, unexpected error) the failure state is published
        before the exception propagates.

        Raises:
            RecorderUnavailable: If no session is recording
        """
        session = self._session
        if session is None or self.state.phase is not VoicePhase.RECORDING:
            raise RecorderUnavailable("No active recording session")

        self._stop_watching()
        last_transcript = self.state.last_transcript
        try:
            captured = await self.capture.stop()
        except RecorderUnavailable as e:
            if self._session is not session:
                logger.info(f"Session {session.session_id} was cancelled while stopping")
                return self.state
            self._session = None
            logger.error(f"Could not finalize recording for session {session.session_id}: {e.message}")
            return self._finish(VoiceSessionState.failure(e.user_message, last_transcript))

        if self._session is not session:
            logger.info(f"Session {session.session_id} was cancelled while stopping; skipping upload")
            self.capture.file_manager.discard(captured.path)
            return self.state

        self.publisher.publish(VoiceSessionState.uploading(last_transcript))
        try:
            return await self._upload(session, captured)
        except (Exception, asyncio.CancelledError) as e:
            logger.error(f"Upload aborted for session {session.session_id}: {e!r}")
            self._finish(VoiceSessionState.failure(UPLOAD_FAILED_MESSAGE, last_transcript))
            raise
        finally:
            self._session = None
            self.capture.file_manager.discard(captured.path)

    def cancel_recording(self) -> None:
        """Discard the running recording without uploading.

        A no-op when idle; ignored once the upload has started.
        """
        state = self.state
        if state.is_processing:
            logger.warning("Upload in progress, cancellation ignored")
            return
        if state.phase is not VoicePhase.RECORDING or self._session is None:
            return

        logger.info(f"Cancelling recording session {self._session.session_id}")
        self._stop_watching()
        self.capture.cancel()
        self._session = None
        self.publisher.publish(VoiceSessionState.idle(state.last_transcript))

    def acknowledge(self) -> None:
        """Clear a success/failure state back to idle."""
        state = self.state
        if state.is_terminal:
            self._cancel_auto_clear()
            self.publisher.publish(VoiceSessionState.idle(state.last_transcript))

    async def shutdown(self) -> None:
        """Cancel background tasks and any running recording."""
        self._cancel_auto_clear()
        self.cancel_recording()
        self._stop_watching()

    async def _upload(self, session: RecordingSession, captured: CapturedAudio) -> VoiceSessionState:
        last_transcript = self.state.last_transcript
        audio_sha256 = self.hasher.hash(captured.data)
        payload = SignaturePayload(
            household_id=session.household_id,
            list_id=session.list_id,
            user_id=session.user_id,
            timestamp=utc_timestamp(self.clock()),
            nonce=self.nonce_factory(),
            audio_sha256=audio_sha256,
        )
        signature = payload.sign(self.signer, self.hmac_secret)
        encoded = await self.encoder.encode(
            payload.fields(), signature, audio_sha256, captured.data,
            filename=captured.filename, audio_content_type=captured.content_type,
        )

        try:
            response = await self.transport.post(self.webhook_url, encoded.body, encoded.content_type)
        except UploadFailed as e:
            logger.error(f"Upload failed for session {session.session_id}: {e.message}")
            return self._finish(VoiceSessionState.failure(UPLOAD_FAILED_MESSAGE, last_transcript))

        if not response.is_success:
            logger.error(f"Webhook answered HTTP {response.status} for session {session.session_id}")
            return self._finish(VoiceSessionState.failure(UPLOAD_FAILED_MESSAGE, last_transcript))

        try:
            result = await self._interpret(response.body, session, payload)
        except InvalidResponse as e:
            logger.warning(f"Webhook rejected session {session.session_id}: {e.message}")
            return self._finish(VoiceSessionState.failure(e.user_message, last_transcript))

        transcript = result.transcript or ""
        logger.info(f"✅ Session {session.session_id} transcribed: '{transcript}' "
                    f"({len(result.suggested_items)} suggested items)")
        return self._finish(VoiceSessionState.success(transcript))

    async def _interpret(self, body: bytes, session: RecordingSession,
                         payload: SignaturePayload) -> UploadResult:
        """Turn a 2xx webhook body into a successful result.

        Raises:
            InvalidResponse: If the body is undecodable, reports an error
                status, or processing never completes
        """
        try:
            webhook = WebhookResponse.model_validate_json(body)
        except ValueError:
            if self.interpreter.is_complete(body):
                return UploadResult(ok=True, transcript="")
            raise InvalidResponse(f"Undecodable webhook body: {body[:200]!r}",
                                  user_message=INVALID_RESPONSE_MESSAGE) from None

        status = webhook.status.strip().lower()
        if status in PENDING_STATUSES and self.completion_poller and self.completion_url:
            return await self._await_completion(webhook, session, payload)
        return self._require_ok(UploadResult.from_webhook(webhook), webhook.status)

    async def _await_completion(self, accepted: WebhookResponse, session: RecordingSession,
                                payload: SignaturePayload) -> UploadResult:
        url = self.completion_url.format(session_id=session.session_id, nonce=payload.nonce)
        logger.info(f"Webhook answered '{accepted.status}', polling for completion")
        body = await self.completion_poller.wait_until_done(url)
        if body is None:
            raise InvalidResponse(f"No completion signal from {url}",
                                  user_message=NOT_COMPLETED_MESSAGE)

        try:
            final = WebhookResponse.model_validate_json(body)
        except ValueError:
            # plain "done" text
            return UploadResult(ok=True, transcript=accepted.transcript)

        result = UploadResult.from_webhook(final)
        if final.status.strip().lower() == CompletionInterpreter.DONE:
            result.ok = True
        if result.ok and result.transcript is None:
            result.transcript = accepted.transcript
        return self._require_ok(result, final.status)

    @staticmethod
    def _require_ok(result: UploadResult, status: str) -> UploadResult:
        if not result.ok:
            raise InvalidResponse(f"Webhook status '{status}': {result.message}",
                                  user_message=result.message or UNKNOWN_ERROR_MESSAGE)
        return result

    async def _watch_capture(self, session: RecordingSession) -> None:
        error = await self.capture.wait_for_failure()
        if self._session is not session or self.state.phase is not VoicePhase.RECORDING:
            return

        logger.error(f"Recording failed during session {session.session_id}: {error}")
        last_transcript = self.state.last_transcript
        self.capture.cancel()
        self._session = None
        self._finish(VoiceSessionState.failure(CAPTURE_FAILED_MESSAGE, last_transcript))

    def _finish(self, state: VoiceSessionState) -> VoiceSessionState:
        self.publisher.publish(state)
        self._schedule_auto_clear(state)
        return state

    def _schedule_auto_clear(self, state: VoiceSessionState) -> None:
        if self.auto_clear is None or not state.is_terminal:
            return
        delay = (self.auto_clear.success_delay if state.phase is VoicePhase.SUCCESS
                 else self.auto_clear.error_delay)
        self._cancel_auto_clear()
        self._auto_clear_task = asyncio.create_task(self._clear_after(state, delay))

    async def _clear_after(self, state: VoiceSessionState, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.state is state:
            self.publisher.publish(VoiceSessionState.idle(state.last_transcript))

    def _cancel_auto_clear(self) -> None:
        if self._auto_clear_task is not None and not self._auto_clear_task.done():
            self._auto_clear_task.cancel()
        self._auto_clear_task = None

    def _stop_watching(self) -> None:
        if self._watch_task is not None and not self._watch_task.done():
            self._watch_task.cancel()
        self._watch_task = None
