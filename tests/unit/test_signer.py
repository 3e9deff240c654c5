"""Unit tests for request signing."""

import hashlib
import hmac

import pytest

from korbivoice.security.signer import RequestSigner, SignaturePayload, canonical_string

SECRET = b"geheim"
DIGEST = "ab" * 32


@pytest.fixture
def fields():
    return {
        "household_id": "h1",
        "list_id": "l1",
        "user_id": "u1",
        "timestamp": "2024-01-01T12:00:00Z",
        "nonce": "n1",
    }


@pytest.mark.unit
class TestCanonicalString:

    def test_fields_sorted_and_digest_last(self):
        assert canonical_string({"b": "2", "a": "1"}, "x") == "a=1\nb=2\naudio_sha256=x"

    def test_empty_fields_keep_leading_newline(self):
        assert canonical_string({}, "x") == "\naudio_sha256=x"

    def test_digest_not_sorted_with_fields(self):
        # "zzz" sorts after "audio_sha256" but the digest line still comes last
        assert canonical_string({"zzz": "1"}, "x") == "zzz=1\naudio_sha256=x"


@pytest.mark.unit
class TestRequestSigner:

    def test_matches_manual_hmac(self, fields):
        expected = hmac.new(
            SECRET,
            ("household_id=h1\nlist_id=l1\nnonce=n1\ntimestamp=2024-01-01T12:00:00Z\nuser_id=u1"
             f"\naudio_sha256={DIGEST}").encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        assert RequestSigner().sign(fields, DIGEST, SECRET) == expected

    def test_signature_is_64_lowercase_hex(self, fields):
        signature = RequestSigner().sign(fields, DIGEST, SECRET)
        assert len(signature) == 64
        assert signature == signature.lower()

    def test_deterministic(self, fields):
        signer = RequestSigner()
        assert signer.sign(fields, DIGEST, SECRET) == signer.sign(dict(fields), DIGEST, SECRET)

    def test_insertion_order_irrelevant(self, fields):
        reversed_fields = dict(reversed(list(fields.items())))
        signer = RequestSigner()
        assert signer.sign(fields, DIGEST, SECRET) == signer.sign(reversed_fields, DIGEST, SECRET)

    @pytest.mark.parametrize("change", [
        ("list_id", "l2"),
        ("nonce", "n2"),
        ("timestamp", "2024-01-01T12:00:01Z"),
    ])
    def test_any_field_change_changes_signature(self, fields, change):
        signer = RequestSigner()
        original = signer.sign(fields, DIGEST, SECRET)
        key, value = change
        assert signer.sign({**fields, key: value}, DIGEST, SECRET) != original

    def test_digest_and_secret_are_bound(self, fields):
        signer = RequestSigner()
        original = signer.sign(fields, DIGEST, SECRET)
        assert signer.sign(fields, "cd" * 32, SECRET) != original
        assert signer.sign(fields, DIGEST, b"anderes") != original

    def test_umlauts_are_signed_as_utf8(self):
        signer = RequestSigner()
        expected = hmac.new(SECRET, "user_id=jürgen\naudio_sha256=x".encode("utf-8"),
                            hashlib.sha256).hexdigest()
        assert signer.sign({"user_id": "jürgen"}, "x", SECRET) == expected

    def test_verify(self, fields):
        signer = RequestSigner()
        signature = signer.sign(fields, DIGEST, SECRET)

        assert signer.verify(fields, DIGEST, SECRET, signature)
        assert signer.verify(fields, DIGEST, SECRET, signature.upper())
        assert not signer.verify(fields, DIGEST, b"falsch", signature)


@pytest.mark.unit
def test_signature_payload_excludes_digest_from_fields():
    payload = SignaturePayload("h1", "l1", "u1", "2024-01-01T12:00:00Z", "n1", DIGEST)

    assert list(payload.fields()) == ["household_id", "list_id", "user_id", "timestamp", "nonce"]
    assert payload.sign(RequestSigner(), SECRET) == RequestSigner().sign(payload.fields(), DIGEST, SECRET)
