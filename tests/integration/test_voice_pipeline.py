"""End-to-end voice session against a local webhook.

The microphone is mocked; everything from the capture thread to the HTTP
request and its signature check on the server side is real.
"""

import asyncio
import io
import wave
from pathlib import Path

import pytest
import yaml
from aiohttp import web
from aiohttp.test_utils import TestServer

from korbivoice.audio.capture import AudioCapture
from korbivoice.config import KorbiVoiceConfig
from korbivoice.models.state import VoicePhase
from korbivoice.security.hashing import ContentHasher
from korbivoice.security.signer import RequestSigner
from korbivoice.services.voice_session import VoiceSessionController

SECRET = "integration-secret"
SIGNED_FIELDS = ("household_id", "list_id", "user_id", "timestamp", "nonce")


class Webhook:
    """Verifies uploads like the backend does and records what it received."""

    def __init__(self, reply=None):
        self.reply = reply or {"status": "ok", "transcript": "zwei Liter Milch",
                               "items": [{"name": "Milch", "quantity_text": "2", "unit": "l"}]}
        self.uploads = []
        self.polls = 0

    async def handle_upload(self, request):
        form = await request.post()
        audio = form["audio"]
        data = audio.file.read()
        fields = {name: form[name] for name in SIGNED_FIELDS}

        upload = {
            "fields": fields,
            "audio": data,
            "filename": audio.filename,
            "content_type": audio.content_type,
            "digest_ok": ContentHasher.hash(data) == form["audio_sha256"],
            "signature_ok": RequestSigner().verify(
                fields, form["audio_sha256"], SECRET.encode("utf-8"), form["signature"]
            ),
        }
        self.uploads.append(upload)

        if not (upload["digest_ok"] and upload["signature_ok"]):
            return web.json_response({"status": "error", "message": "Signatur ungültig"}, status=401)
        return web.json_response(self.reply)

    async def handle_status(self, request):
        self.polls += 1
        if self.polls < 2:
            return web.json_response({"status": "processing"})
        return web.Response(text="done")

    def app(self):
        app = web.Application()
        app.router.add_post("/webhook/korbi-voice", self.handle_upload)
        app.router.add_get("/status/{nonce}", self.handle_status)
        return app


def write_config(directory: str, server: TestServer, **extra) -> KorbiVoiceConfig:
    data = {
        "webhook": {"url": str(server.make_url("/webhook/korbi-voice")), "timeout_seconds": 5},
        "security": {"hmac_secret": SECRET},
        "audio": {"preset": "compact", "chunk_size": 256, "microphone_permission": "granted"},
        "storage": {"temp_directory": "recordings"},
    }
    for section, values in extra.items():
        data.setdefault(section, {}).update(values)

    path = Path(directory) / "korbivoice.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return KorbiVoiceConfig(str(path))


@pytest.mark.integration
class TestVoicePipeline:

    @pytest.mark.asyncio
    async def test_signed_upload_is_accepted(self, temp_data_dir, mock_pyaudio, publisher):
        webhook = Webhook()

        async with TestServer(webhook.app()) as server:
            config = write_config(temp_data_dir, server)
            controller = VoiceSessionController.from_config(config, publisher=publisher)

            session = await controller.start_recording("haushalt-7", "einkauf", "jürgen")
            await asyncio.sleep(0.1)
            final = await controller.stop_recording()

        assert final.phase is VoicePhase.SUCCESS
        assert final.transcript == "zwei Liter Milch"

        assert len(webhook.uploads) == 1
        upload = webhook.uploads[0]
        assert upload["signature_ok"] and upload["digest_ok"]
        assert upload["fields"]["household_id"] == "haushalt-7"
        assert upload["fields"]["user_id"] == "jürgen"
        assert upload["filename"] == f"korbi-voice-{session.session_id}.wav"
        assert upload["content_type"] == "audio/wav"

        with wave.open(io.BytesIO(upload["audio"])) as wf:
            assert wf.getframerate() == 12000
            assert wf.getnframes() > 0

        recordings = Path(temp_data_dir) / "recordings"
        assert list(recordings.glob("korbi-voice-*")) == []
        assert not AudioCapture._microphone_lease.locked()

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected(self, temp_data_dir, mock_pyaudio, publisher):
        webhook = Webhook()

        async with TestServer(webhook.app()) as server:
            config = write_config(temp_data_dir, server, security={"hmac_secret": "falsch"})
            controller = VoiceSessionController.from_config(config, publisher=publisher)

            await controller.start_recording("haushalt-7", "einkauf", "user-1")
            await asyncio.sleep(0.05)
            final = await controller.stop_recording()

        assert webhook.uploads[0]["signature_ok"] is False
        assert final.phase is VoicePhase.FAILURE
        assert final.error_message == "Upload fehlgeschlagen"

    @pytest.mark.asyncio
    async def test_accepted_upload_polls_for_completion(self, temp_data_dir, mock_pyaudio, publisher):
        webhook = Webhook(reply={"status": "accepted", "transcript": "ein Brot"})

        async with TestServer(webhook.app()) as server:
            config = write_config(
                temp_data_dir, server,
                webhook={"completion_url": str(server.make_url("/status")) + "/{nonce}",
                         "poll_interval_seconds": 0.01, "max_polls": 5},
            )
            controller = VoiceSessionController.from_config(config, publisher=publisher)

            await controller.start_recording("haushalt-7", "einkauf", "user-1")
            await asyncio.sleep(0.05)
            final = await controller.stop_recording()

        assert webhook.polls == 2
        assert final.phase is VoicePhase.SUCCESS
        assert final.transcript == "ein Brot"

    @pytest.mark.asyncio
    async def test_unreachable_webhook(self, temp_data_dir, mock_pyaudio, publisher):
        webhook = Webhook()
        async with TestServer(webhook.app()) as server:
            config = write_config(temp_data_dir, server)
        # server is gone now
        controller = VoiceSessionController.from_config(config, publisher=publisher)

        await controller.start_recording("haushalt-7", "einkauf", "user-1")
        await asyncio.sleep(0.05)
        final = await controller.stop_recording()

        assert final.phase is VoicePhase.FAILURE
        assert final.error_message == "Upload fehlgeschlagen"
        assert not AudioCapture._microphone_lease.locked()
