"""Unit tests for the line protocol codec."""

import pytest

from squeeze_client.errors import MalformedTokenError
from squeeze_client.protocol.codec import (
    ESCAPED_SEPARATOR,
    decode,
    encode,
    make_token,
    parse_decimal_int,
    parse_parameter,
    split_token,
    tokenize,
)


class TestFieldEncoding:
    """Test percent-encoding of single wire fields."""

    def test_encode_escapes_space_and_colon(self):
        assert encode("a b:c") == "a%20b%3Ac"

    def test_encode_escapes_slash(self):
        assert encode("AC/DC") == "AC%2FDC"

    def test_encode_utf8(self):
        assert encode("Björk") == "Bj%C3%B6rk"

    def test_decode_reverses_encode(self):
        text = "Sigur Rós: ( ) 100%"
        assert decode(encode(text)) == text

    def test_separator_is_encoded_colon(self):
        assert ESCAPED_SEPARATOR == encode(":")


class TestTokenize:
    """Test splitting of raw lines."""

    def test_splits_on_whitespace(self):
        assert tokenize("albums 0 1 count%3A3\n") == ["albums", "0", "1", "count%3A3"]

    def test_collapses_repeated_spaces(self):
        assert tokenize("players  0   1") == ["players", "0", "1"]

    def test_empty_line(self):
        assert tokenize("") == []


class TestSplitToken:
    """Test key/value splitting of tagged tokens."""

    def test_simple_token(self):
        token = split_token("album%3AGreatest%20Hits")

        assert token.key == "album"
        assert token.value == "Greatest Hits"
        assert token.raw == "album%3AGreatest%20Hits"

    def test_first_separator_wins(self):
        """A colon inside the value must not split the token again."""
        token = split_token("url%3Afile%3A%2F%2F%2Fmusic%2Fa.mp3")

        assert token.key == "url"
        assert token.value == "file:///music/a.mp3"

    def test_key_with_space(self):
        token = split_token("playlist%20index%3A4")

        assert token.key == "playlist index"
        assert token.value == "4"

    def test_empty_value(self):
        token = split_token("search%3A")

        assert token.key == "search"
        assert token.value == ""

    def test_missing_separator_raises(self):
        with pytest.raises(MalformedTokenError) as exc_info:
            split_token("nocolonhere")

        assert exc_info.value.token == "nocolonhere"
        assert "Expected colon" in str(exc_info.value)

    def test_unencoded_colon_is_not_a_separator(self):
        with pytest.raises(MalformedTokenError):
            split_token("key:value")


class TestMakeToken:
    """Test building tokens for outbound requests."""

    def test_raw_form(self):
        token = make_token("tags", "lja")

        assert token.raw == "tags%3Alja"
        assert token.as_parameter() == "tags:lja"

    def test_colon_in_value_survives_round_trip(self):
        token = make_token("url", "http://host:9000/a")

        parsed = split_token(token.raw)

        assert parsed.key == "url"
        assert parsed.value == "http://host:9000/a"

    def test_parse_parameter(self):
        token = parse_parameter("genre_id:3")

        assert token.key == "genre_id"
        assert token.value == "3"
        assert token.raw == "genre_id%3A3"

    def test_parse_parameter_keeps_later_colons_in_value(self):
        token = parse_parameter("url:http://x")

        assert token.key == "url"
        assert token.value == "http://x"

    def test_parse_parameter_without_colon(self):
        token = parse_parameter("compilation")

        assert token.key == "compilation"
        assert token.value == ""


class TestParseDecimalInt:
    """Test lenient integer parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("12", 12),
            ("12.7", 12),
            ("0", 0),
            ("", 0),
            (None, 0),
            ("abc", 0),
        ],
    )
    def test_values(self, value, expected):
        assert parse_decimal_int(value) == expected

    def test_default(self):
        assert parse_decimal_int("x", default=-1) == -1
