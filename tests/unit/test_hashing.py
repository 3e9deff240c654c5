"""Unit tests for ContentHasher."""

import pytest

from korbivoice.security.hashing import ContentHasher

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
ABC_SHA256 = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


@pytest.mark.unit
class TestContentHasher:

    def test_empty_input(self):
        assert ContentHasher.hash(b"") == EMPTY_SHA256

    def test_known_digest(self):
        assert ContentHasher.hash(b"abc") == ABC_SHA256

    def test_digest_is_lowercase_hex(self, sample_audio_chunk):
        digest = ContentHasher().hash(sample_audio_chunk)
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_single_byte_change_changes_digest(self, sample_audio_chunk):
        changed = bytearray(sample_audio_chunk)
        changed[100] ^= 0x01
        assert ContentHasher.hash(sample_audio_chunk) != ContentHasher.hash(bytes(changed))

    def test_hash_file_matches_in_memory_hash(self, temp_data_dir):
        from pathlib import Path
        data = bytes(range(256)) * 100  # larger than one read chunk
        path = Path(temp_data_dir) / "clip.wav"
        path.write_bytes(data)

        assert ContentHasher.hash_file(path) == ContentHasher.hash(data)

    def test_hash_file_missing(self, temp_data_dir):
        from pathlib import Path
        with pytest.raises(FileNotFoundError):
            ContentHasher.hash_file(Path(temp_data_dir) / "missing.wav")
