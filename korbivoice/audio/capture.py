"""Microphone capture into a temporary WAV file."""

import asyncio
import logging
import threading
import uuid
import wave
from datetime import datetime
from pathlib import Path
from threading import Thread, Event
from typing import Optional

import numpy as np
import pyaudio

from ..exceptions import PermissionDenied, RecorderUnavailable
from ..models.audio import AudioStats, CapturedAudio, RecordingFormat, STANDARD_FORMAT
from ..storage.file_manager import RecordingFileManager
from .permissions import PermissionGate

logger = logging.getLogger(__name__)


class AudioCapture:
    """Records one finite clip at a time from the default input device.

    The microphone is an exclusive resource: a process-wide lease is taken in
    ``start`` and released when the recording thread ends, whether it stops,
    is cancelled or dies on a device error.
    """

    _microphone_lease = threading.Lock()

    def __init__(
        self,
        file_manager: RecordingFileManager,
        permission_gate: Optional[PermissionGate] = None,
        recording_format: RecordingFormat = STANDARD_FORMAT,
    ):
        """Initialize audio capture.

        Args:
            file_manager: Provides and cleans up recording paths
            permission_gate: Microphone permission; asks on first use by default
            recording_format: Default capture settings (16kHz mono)
        """
        self.file_manager = file_manager
        self.permission_gate = permission_gate or PermissionGate()
        self.recording_format = recording_format

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.bytes_written = 0
        self.peak_level = 0.0

        # Device resources, owned by the recording thread once started
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self._stream = None
        self._wave_file: Optional[wave.Wave_write] = None
        self._active_format = recording_format
        self._audio_path: Optional[Path] = None
        self._holds_microphone = False
        self._release_lock = threading.Lock()
        self._recording_done = True
        self._pending_discard: Optional[Path] = None

        # Error channel from the recording thread
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._failure: Optional[asyncio.Future] = None
        self._thread_error: Optional[BaseException] = None

    async def start(self, recording_format: Optional[RecordingFormat] = None,
                    session_id: Optional[str] = None) -> Path:
        """Open the microphone and start recording in a background thread.

        Returns:
            Path of the temporary file the audio is written to

        Raises:
            PermissionDenied: If microphone access is refused
            RecorderUnavailable: If already recording, the microphone is held
                elsewhere, or the input stream cannot be opened
        """
        if self.is_recording:
            raise RecorderUnavailable("Recording already in progress")

        if not await self.permission_gate.ensure():
            raise PermissionDenied("Microphone permission denied")

        if self.recording_thread is not None and self.recording_thread.is_alive():
            await asyncio.to_thread(self._join_recording_thread)

        fmt = recording_format or self.recording_format
        if not AudioCapture._microphone_lease.acquire(blocking=False):
            raise RecorderUnavailable("Microphone is held by another recording",
                                      user_message="Das Mikrofon wird bereits verwendet.")
        self._holds_microphone = True

        path = self.file_manager.create_recording_path(session_id or str(uuid.uuid4()), fmt.file_suffix)
        opened = False
        try:
            await asyncio.to_thread(self.__open_device, fmt, path)
            opened = True
        except (OSError, ValueError) as e:
            raise RecorderUnavailable(f"Could not open recording stream: {e}") from e
        finally:
            if not opened:
                self._release_device()
                self.file_manager.discard(path)

        logger.info(f"Starting audio recording to {path.name}")
        self._loop = asyncio.get_running_loop()
        self._failure = self._loop.create_future()
        self._thread_error = None
        self._active_format = fmt
        self._audio_path = path
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.bytes_written = 0
        self.peak_level = 0.0
        self._recording_done = False
        self._pending_discard = None

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_recording = True
        return path

    async def stop(self) -> CapturedAudio:
        """Stop recording and return the finalized clip.

        Raises:
            RecorderUnavailable: If nothing is recording or the recording
                thread failed
        """
        if not self.is_recording:
            raise RecorderUnavailable("No recording in progress")

        logger.info("Stopping audio recording")
        self.stop_event.set()
        await asyncio.to_thread(self._join_recording_thread)
        self.is_recording = False
        self._cancel_failure_channel()

        path = self._audio_path
        self._audio_path = None
        fmt = self._active_format

        if path is None:
            raise RecorderUnavailable("Recording was cancelled while stopping")

        if self._thread_error is not None:
            self.file_manager.discard(path)
            raise RecorderUnavailable(f"Recording failed: {self._thread_error}",
                                      user_message="Aufnahmefehler") from self._thread_error

        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise RecorderUnavailable(f"Recording file missing: {e}",
                                      user_message="Die Aufnahme konnte nicht gefunden werden.") from e

        duration = self.bytes_written / fmt.bytes_per_second
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}, {duration:.1f}s, {len(data)} bytes")
        return CapturedAudio(path=path, data=data, content_type=fmt.content_type,
                             duration_seconds=duration)

    def cancel(self) -> None:
        """Discard the current recording. Safe to call in any state.

        Does not wait for the recording thread: the file is deleted once the
        thread has closed it, and the microphone is released at the same time.
        """
        if not self.is_recording:
            return

        logger.info("Cancelling audio recording")
        self.stop_event.set()
        self.is_recording = False
        self._cancel_failure_channel()
        path, self._audio_path = self._audio_path, None

        with self._release_lock:
            if not self._recording_done:
                self._pending_discard = path
                return
        self.file_manager.discard(path)

    async def wait_for_failure(self) -> BaseException:
        """Resolve with the error if the recording thread dies mid-recording."""
        if self._failure is None:
            raise RecorderUnavailable("No recording in progress")
        return await self._failure

    def __open_device(self, fmt: RecordingFormat, path: Path) -> None:
        self.pyaudio_instance = pyaudio.PyAudio()
        self._stream = self.pyaudio_instance.open(
            format=pyaudio.paInt16,
            channels=fmt.channels,
            rate=fmt.sample_rate,
            input=True,
            frames_per_buffer=fmt.chunk_size,
            stream_callback=None
        )
        self._wave_file = wave.open(str(path), "wb")
        self._wave_file.setnchannels(fmt.channels)
        self._wave_file.setsampwidth(fmt.sample_width)
        self._wave_file.setframerate(fmt.sample_rate)
        logger.info(f"Audio stream opened: {fmt.sample_rate}Hz, "
                    f"{fmt.chunk_size} samples/chunk")

    def __read_audio_chunk(self) -> bytes:
        audio_chunk = self._stream.read(
            self._active_format.chunk_size,
            exception_on_overflow=False
        )
        self.total_chunks += 1
        return audio_chunk

    def __update_peak_level(self, audio_chunk: bytes) -> None:
        samples = np.frombuffer(audio_chunk, dtype=np.int16)
        if samples.size:
            peak = float(np.abs(samples.astype(np.int32)).max()) / 32768.0
            self.peak_level = max(self.peak_level, peak)

    def _record_continuously(self) -> None:
        """Internal method: recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.__read_audio_chunk()
                self._wave_file.writeframes(audio_chunk)
                self.bytes_written += len(audio_chunk)
                self.__update_peak_level(audio_chunk)
        except Exception as e:
            logger.error(f"Recording thread failed: {e}", exc_info=True)
            self._thread_error = e
            self._report_failure(e)
        finally:
            self._release_device()
            self._finish_thread()

    def _finish_thread(self) -> None:
        with self._release_lock:
            self._recording_done = True
            path, self._pending_discard = self._pending_discard, None
        if path is not None:
            self.file_manager.discard(path)

    def _report_failure(self, error: Exception) -> None:
        loop, future = self._loop, self._failure
        if loop is None or future is None or loop.is_closed():
            return

        def resolve() -> None:
            if not future.done():
                future.set_result(error)

        loop.call_soon_threadsafe(resolve)

    def _cancel_failure_channel(self) -> None:
        if self._failure is not None and not self._failure.done():
            self._failure.cancel()
        self._failure = None

    def _join_recording_thread(self) -> None:
        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly, releasing device")
                self._release_device()
                self._finish_thread()

    def _release_device(self) -> None:
        """Close stream, file and lease. Idempotent."""
        with self._release_lock:
            if self._stream is not None:
                try:
                    self._stream.stop_stream()
                    self._stream.close()
                except OSError as e:
                    logger.warning(f"Error closing audio stream: {e}")
                self._stream = None
            if self.pyaudio_instance is not None:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None
            if self._wave_file is not None:
                self._wave_file.close()
                self._wave_file = None
            if self._holds_microphone:
                self._holds_microphone = False
                AudioCapture._microphone_lease.release()
                logger.debug("Microphone released")

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self._active_format.sample_rate,
            chunk_size=self._active_format.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )

    def __del__(self):
        """Ensure the microphone is released on deletion."""
        if self.is_recording:
            self.stop_event.set()
            self._release_device()
