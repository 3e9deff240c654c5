"""Audio capture module."""

from .capture import AudioCapture
from .permissions import MicrophonePermission, PermissionGate

__all__ = [
    'AudioCapture',
    'MicrophonePermission',
    'PermissionGate'
]
