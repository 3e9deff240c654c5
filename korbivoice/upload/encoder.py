"""multipart/form-data encoding for signed voice uploads."""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Mapping

import aiohttp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodedUpload:
    """A ready-to-send request body."""
    body: bytes
    content_type: str
    boundary: str


class _BodyBuffer:
    """Collects what a MultipartWriter writes into memory."""

    def __init__(self):
        self.chunks: List[bytes] = []

    async def write(self, data: bytes) -> None:
        self.chunks.append(bytes(data))

    def getvalue(self) -> bytes:
        return b"".join(self.chunks)


class UploadEncoder:
    """Serializes upload metadata, the signature and the audio into one body."""

    def __init__(self, audio_field: str = "audio"):
        self.audio_field = audio_field

    @staticmethod
    def new_boundary() -> str:
        return f"Boundary-{uuid.uuid4().hex}"

    async def encode(
        self,
        fields: Mapping[str, str],
        signature: str,
        audio_sha256: str,
        audio_bytes: bytes,
        filename: str,
        audio_content_type: str = "audio/wav",
    ) -> EncodedUpload:
        """Build the multipart body.

        Text parts are written in mapping order, followed by ``signature``,
        ``audio_sha256`` and finally the binary audio part.

        Args:
            fields: Signed metadata fields
            signature: HMAC over fields and digest
            audio_sha256: Digest of ``audio_bytes``
            audio_bytes: Finalized recording
            filename: Name reported for the audio part
            audio_content_type: MIME type of the audio part

        Returns:
            EncodedUpload with body and Content-Type header value
        """
        boundary = self.new_boundary()
        writer = aiohttp.MultipartWriter("form-data", boundary=boundary)

        text_fields = dict(fields)
        text_fields["signature"] = signature
        text_fields["audio_sha256"] = audio_sha256

        for name, value in text_fields.items():
            part = writer.append(str(value))
            part.set_content_disposition("form-data", name=name)

        audio_part = writer.append(audio_bytes, {"Content-Type": audio_content_type})
        audio_part.set_content_disposition("form-data", name=self.audio_field, filename=filename)

        buffer = _BodyBuffer()
        await writer.write(buffer)
        body = buffer.getvalue()
        logger.debug(f"Encoded multipart body: {len(text_fields)} fields, "
                     f"{len(audio_bytes)} audio bytes, {len(body)} bytes total")

        return EncodedUpload(
            body=body,
            content_type=writer.content_type,
            boundary=boundary,
        )
