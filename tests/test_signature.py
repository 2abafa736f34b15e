"""Tests for HMAC request signing."""

import hashlib
import hmac
import re
import time

import pytest

from task_relay.api.signature import (
    SIGNATURE_HEX_LENGTH,
    build_signing_message,
    current_timestamp,
    sign,
    verify_signature,
)

SECRET = "jd_plugin_secret_2024"
TS = "1700000000000"


def _reference(message: str, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


class TestSigningMessage:
    def test_delimited_triple(self):
        assert build_signing_message("jd", "alice", TS) == f"|jd|alice|{TS}|"

    def test_empty_username(self):
        assert build_signing_message("jd", "", TS) == f"|jd||{TS}|"

    def test_none_username_same_as_empty(self):
        assert build_signing_message("jd", None, TS) == build_signing_message("jd", "", TS)


class TestSign:
    def test_matches_reference_hmac(self):
        assert sign("jd", "alice", TS, SECRET) == _reference(f"|jd|alice|{TS}|")

    def test_lowercase_hex_64(self):
        sig = sign("jd", "alice", TS, SECRET)
        assert len(sig) == SIGNATURE_HEX_LENGTH
        assert re.fullmatch(r"[0-9a-f]{64}", sig)

    def test_deterministic(self):
        assert sign("jd", "alice", TS, SECRET) == sign("jd", "alice", TS, SECRET)

    @pytest.mark.parametrize("changed", [
        ("jx", "alice", TS),
        ("jd", "alicf", TS),
        ("jd", "alice", "1700000000001"),
    ])
    def test_single_field_change_changes_digest(self, changed):
        assert sign(*changed, SECRET) != sign("jd", "alice", TS, SECRET)

    def test_secret_matters(self):
        assert sign("jd", "alice", TS, "other") != sign("jd", "alice", TS, SECRET)

    def test_check_variant_differs_from_task_variant(self):
        """URL check signs with an empty username."""
        assert sign("jd", "", TS, SECRET) != sign("jd", "alice", TS, SECRET)

    def test_unicode_inputs(self):
        sig = sign("jd", "张三", TS, SECRET)
        assert sig == _reference(f"|jd|张三|{TS}|")


class TestVerifySignature:
    def test_valid(self):
        sig = sign("jd", "alice", TS, SECRET)
        assert verify_signature(sig, "jd", "alice", TS, SECRET) is True

    def test_uppercase_accepted(self):
        sig = sign("jd", "alice", TS, SECRET).upper()
        assert verify_signature(sig, "jd", "alice", TS, SECRET) is True

    def test_tampered(self):
        sig = sign("jd", "alice", TS, SECRET)
        assert verify_signature(sig, "jd", "mallory", TS, SECRET) is False


class TestTimestamp:
    def test_milliseconds_string(self):
        before = int(time.time() * 1000)
        ts = current_timestamp()
        after = int(time.time() * 1000)
        assert ts.isdigit()
        assert before - 1 <= int(ts) <= after + 1
