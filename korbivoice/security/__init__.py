"""Hashing and request signing."""

from .hashing import ContentHasher
from .signer import RequestSigner, SignaturePayload, canonical_string

__all__ = [
    "ContentHasher",
    "RequestSigner",
    "SignaturePayload",
    "canonical_string",
]
