"""Pytest configuration and fixtures for korbivoice tests."""

import pytest
import tempfile
import time
import uuid
import logging
from unittest.mock import Mock, patch
import numpy as np

from korbivoice.audio.permissions import MicrophonePermission, PermissionGate
from korbivoice.services.state_publisher import VoiceStatePublisher
from korbivoice.storage.file_manager import RecordingFileManager


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond temp files")
    config.addinivalue_line("markers", "integration: tests that wire several components together")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")
    config.addinivalue_line("markers", "slow: tests that take several seconds")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def file_manager(temp_data_dir):
    return RecordingFileManager(temp_data_dir)


@pytest.fixture
def granted_gate():
    return PermissionGate(MicrophonePermission.GRANTED)


@pytest.fixture
def publisher():
    """Publisher on a unique top-level topic so tests never see each other's messages."""
    return VoiceStatePublisher(f"voice_state_{uuid.uuid4().hex}")


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers at half scale
    audio_data = (wave_data * 16383).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        def read_silence(frames, exception_on_overflow=True):
            time.sleep(0.005)  # pace like a real device
            return b'\x00' * (frames * 2)

        # Configure mock stream
        mock_stream.read.side_effect = read_silence
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
