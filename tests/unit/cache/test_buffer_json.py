"""Tests for the tagged byte-string JSON encoding."""

import json

import pytest

from netlify_published_date.cache.buffer_json import (
    bytes_to_json,
    is_buffer_json,
    json_to_bytes,
)


class TestBytesToJson:
    """Encoding picks the first exact text encoding, else base64."""

    def test_utf8_text_is_stored_as_text(self):
        encoded = bytes_to_json("<p>こんにちは</p>".encode("utf-8"))

        assert encoded == {
            "type": "Buffer",
            "data": "<p>こんにちは</p>",
            "encoding": "utf-8",
        }

    def test_invalid_utf8_falls_back_to_base64(self):
        body = b"\xff\xfe\x00binary"

        encoded = bytes_to_json(body)

        assert encoded["encoding"] == "base64"
        assert json_to_bytes(encoded) == body

    def test_encoded_value_survives_json_document(self):
        body = bytes(range(256))

        document = json.loads(json.dumps(bytes_to_json(body)))

        assert json_to_bytes(document) == body


class TestJsonToBytes:
    """Decoding rejects anything that is not a decodable tagged value."""

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "plain string",
            {"type": "Buffer", "data": "abc"},
            {"type": "Buffer", "data": 42, "encoding": "utf-8"},
            {"type": "Blob", "data": "abc", "encoding": "utf-8"},
            {"type": "Buffer", "data": "abc", "encoding": "utf-16"},
        ],
    )
    def test_untagged_values_are_not_decoded(self, value):
        assert not is_buffer_json(value)
        assert json_to_bytes(value) is None

    def test_corrupt_base64_is_not_decoded(self):
        assert json_to_bytes({"type": "Buffer", "data": "!!!", "encoding": "base64"}) is None

    def test_hex_and_latin1_are_accepted(self):
        assert json_to_bytes({"type": "Buffer", "data": "cafe", "encoding": "hex"}) == (
            b"\xca\xfe"
        )
        assert json_to_bytes({"type": "Buffer", "data": "é", "encoding": "latin1"}) == (
            b"\xe9"
        )

    def test_raw_bytes_pass_through(self):
        assert json_to_bytes(b"raw") == b"raw"
