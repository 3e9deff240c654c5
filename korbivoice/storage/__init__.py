"""Storage of temporary recordings."""

from .file_manager import RecordingFileManager

__all__ = ["RecordingFileManager"]
