"""Upload encoding, transport and completion handling."""

from .encoder import EncodedUpload, UploadEncoder
from .transport import TransportResponse, UploadTransport
from .completion import CompletionInterpreter, CompletionPoller

__all__ = [
    "EncodedUpload",
    "UploadEncoder",
    "TransportResponse",
    "UploadTransport",
    "CompletionInterpreter",
    "CompletionPoller",
]
