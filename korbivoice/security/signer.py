"""HMAC-SHA256 request signing for webhook uploads.

The webhook authenticates an upload by recomputing the signature over the
same canonical string:

    <key>=<value>        one line per metadata field, sorted by key
    audio_sha256=<hex>   always last, never part of the sort

Replay protection comes from the timestamp and nonce fields, which the
server checks; the signer itself is a pure function.
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Dict, Mapping


def canonical_string(fields: Mapping[str, str], audio_sha256: str) -> str:
    """Build the string that is fed into the HMAC.

    An empty field map still produces the separating newline, so the result
    starts with ``"\\naudio_sha256="`` in that case.
    """
    canonical = "\n".join(f"{key}={fields[key]}" for key in sorted(fields))
    return f"{canonical}\naudio_sha256={audio_sha256}"


class RequestSigner:
    """Signs upload metadata together with the audio digest."""

    def sign(self, fields: Mapping[str, str], audio_sha256: str, secret: bytes) -> str:
        """Compute the signature for one upload.

        Args:
            fields: Metadata fields (household_id, list_id, ...); values must
                be valid text, callers reject anything else
            audio_sha256: Lowercase hex digest of the audio
            secret: Shared HMAC key

        Returns:
            64-character lowercase hexadecimal HMAC-SHA256
        """
        message = canonical_string(fields, audio_sha256).encode("utf-8")
        return hmac.new(secret, message, hashlib.sha256).hexdigest()

    def verify(self, fields: Mapping[str, str], audio_sha256: str,
               secret: bytes, signature: str) -> bool:
        """Check a signature in constant time."""
        expected = self.sign(fields, audio_sha256, secret)
        return hmac.compare_digest(expected, signature.lower())


@dataclass(frozen=True)
class SignaturePayload:
    """The canonical field set signed for one upload."""
    household_id: str
    list_id: str
    user_id: str
    timestamp: str
    nonce: str
    audio_sha256: str

    def fields(self) -> Dict[str, str]:
        """Metadata fields in upload order, without the audio digest."""
        return {
            "household_id": self.household_id,
            "list_id": self.list_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "nonce": self.nonce,
        }

    def sign(self, signer: RequestSigner, secret: bytes) -> str:
        return signer.sign(self.fields(), self.audio_sha256, secret)
