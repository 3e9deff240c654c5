"""SHA-256 content digests for finalized recordings."""

import hashlib
from pathlib import Path


class ContentHasher:
    """Computes lowercase hex SHA-256 digests of audio content."""

    CHUNK_SIZE = 8192  # 8KB chunks when hashing from disk

    @staticmethod
    def hash(data: bytes) -> str:
        """Compute the SHA-256 digest of ``data``.

        Args:
            data: Raw bytes (may be empty)

        Returns:
            64-character lowercase hexadecimal digest
        """
        return hashlib.sha256(data).hexdigest()

    @classmethod
    def hash_file(cls, file_path: Path) -> str:
        """Compute the SHA-256 digest of a file without loading it at once.

        Raises:
            FileNotFoundError: If file does not exist.
        """
        hasher = hashlib.sha256()
        with open(file_path, "rb") as f:
            while chunk := f.read(cls.CHUNK_SIZE):
                hasher.update(chunk)
        return hasher.hexdigest()
