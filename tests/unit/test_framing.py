"""Unit tests for rangefinder line framing."""

import pytest

from creepy_lights.lib.rangefinder import LineFramer, MalformedReadingError, parse_distance


class TestLineFramer:
    """Test LineFramer."""

    def test_single_complete_line(self):
        framer = LineFramer()

        assert framer.feed(b"1234\n") == [b"1234"]
        assert framer.pending == 0

    def test_no_sentinel_buffers_partial_line(self):
        framer = LineFramer()

        assert framer.feed(b"12") == []
        assert framer.pending == 2
        assert framer.feed(b"34\n") == [b"1234"]

    def test_multiple_lines_in_one_chunk(self):
        framer = LineFramer()

        tokens = framer.feed(b"100\n200\n300\n40")

        assert tokens == [b"100", b"200", b"300"]
        assert framer.pending == 2

    def test_every_chunking_gives_same_tokens(self):
        """One token per sentinel, in order, however the stream is split."""
        stream = b"812\n0\n1500\n77\n\n923\n"
        expected = [b"812", b"0", b"1500", b"77", b"", b"923"]

        for size in range(1, len(stream) + 1):
            framer = LineFramer()
            tokens = []
            for start in range(0, len(stream), size):
                tokens.extend(framer.feed(stream[start:start + size]))

            assert tokens == expected, f"chunk size {size}"
            assert framer.lines_framed == stream.count(b"\n")

    def test_reset_discards_partial_line(self):
        framer = LineFramer()
        framer.feed(b"99")

        framer.reset()

        assert framer.pending == 0
        assert framer.feed(b"1\n") == [b"1"]

    def test_runaway_line_is_dropped(self):
        framer = LineFramer(max_buffer=8)

        assert framer.feed(b"123456789012") == []
        assert framer.pending == 0
        assert framer.bytes_dropped == 12
        assert framer.feed(b"5\n") == [b"5"]


class TestParseDistance:
    """Test parse_distance."""

    @pytest.mark.parametrize("token,expected", [
        (b"1234", 1234.0),
        (b"0", 0.0),
        (b"-15", -15.0),
        (b"812\r", 812.0),
        (b" 42 ", 42.0),
        (b"12.5", 12.5),
    ])
    def test_valid_tokens(self, token, expected):
        assert parse_distance(token) == expected

    @pytest.mark.parametrize("token", [b"", b"\r", b"abc", b"12a", b"nan", b"inf", b"\xff\xfe"])
    def test_malformed_tokens(self, token):
        with pytest.raises(MalformedReadingError) as exc_info:
            parse_distance(token)

        assert exc_info.value.token == token

    def test_malformed_reading_is_value_error(self):
        with pytest.raises(ValueError):
            parse_distance(b"--")
