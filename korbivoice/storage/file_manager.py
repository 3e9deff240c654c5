"""File management for temporary voice recordings."""

import logging
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


class RecordingFileManager:
    """Manages the temporary files that hold recordings until upload."""

    FILE_PREFIX = "korbi-voice-"

    def __init__(self, temp_dir: Optional[str] = None):
        """Initialize file manager with a temp directory.

        Args:
            temp_dir: Directory for recordings; defaults to a ``korbivoice``
                folder inside the system temp directory
        """
        if temp_dir is None:
            temp_dir = str(Path(tempfile.gettempdir()) / "korbivoice")
        self.temp_dir = Path(temp_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"RecordingFileManager initialized with temp_dir: {self.temp_dir}")

    def create_recording_path(self, session_id: str, suffix: str = ".wav") -> Path:
        """Return the path a session's recording is written to."""
        return self.temp_dir / f"{self.FILE_PREFIX}{session_id}{suffix}"

    def discard(self, path: Optional[Path]) -> bool:
        """Delete a recording file, best effort.

        Returns:
            True if a file was removed
        """
        if path is None:
            return False
        try:
            path.unlink()
            logger.debug(f"Discarded recording: {path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not delete recording {path}: {e}")
            return False

    def cleanup_stale_recordings(self, max_age_hours: float = 24.0) -> int:
        """Remove recordings left behind by sessions that never finished.

        Args:
            max_age_hours: Maximum age before a file counts as stale

        Returns:
            Number of files removed
        """
        cutoff_time = time.time() - (max_age_hours * 60 * 60)
        cleaned_count = 0

        for file_path in self.temp_dir.glob(f"{self.FILE_PREFIX}*"):
            try:
                if file_path.is_file() and file_path.stat().st_mtime < cutoff_time:
                    file_path.unlink()
                    cleaned_count += 1
                    logger.info(f"Cleaned up stale recording: {file_path}")
            except OSError as e:
                logger.warning(f"Could not clean up {file_path}: {e}")

        if cleaned_count:
            logger.info(f"Cleaned up {cleaned_count} stale recordings")
        return cleaned_count

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics for pending recordings."""
        total_size = 0
        file_count = 0
        for file_path in self.temp_dir.glob(f"{self.FILE_PREFIX}*"):
            if file_path.is_file():
                file_count += 1
                total_size += file_path.stat().st_size

        return {
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "recording_files": file_count,
            "temp_directory": str(self.temp_dir),
        }
