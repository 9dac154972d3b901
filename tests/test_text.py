"""Tests for fixed-width word wrapping."""

import pytest

from activitypub_finger.text import wrapped

LOREM = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod "
    "tempor incididunt ut labore et dolore magna aliqua. Ut enim ad minim "
    "veniam, quis nostrud exercitation ullamco laboris nisi ut aliquip ex ea "
    "commodo consequat.\n\nDuis aute irure dolor in reprehenderit in voluptate "
    "velit esse cillum dolore eu fugiat nulla pariatur."
)


class TestWrapped:
    """Tests for wrapped()."""

    def test_short_line_unchanged(self):
        """Test a line within the width passes through."""
        assert wrapped("hello world", 72) == "hello world"

    def test_wraps_at_word_boundary(self):
        """Test words move to the next line when they would overflow."""
        assert wrapped("aaa bbb ccc", 7) == "aaa bbb\nccc"

    def test_preserves_blank_lines(self):
        """Test paragraph breaks survive wrapping."""
        assert wrapped("one two three\n\nfour", 8) == "one two\nthree\n\nfour"

    def test_overlong_first_word_is_hard_broken(self):
        """Test a word longer than the width is split at full width."""
        assert wrapped("abcdefghij", 4) == "abcd\nefgh\nij"

    def test_overlong_word_fills_current_line(self):
        """Test the first piece of an overlong word fills the current line."""
        assert wrapped("ab cdefghij", 5) == "ab cd\nefghi\nj"

    def test_overlong_word_with_no_room_left(self):
        """Test an overlong word starts a new line when the current one is full."""
        assert wrapped("abcd efghijk", 5) == "abcd\nefghi\njk"

    def test_surrounding_whitespace_trimmed(self):
        """Test leading and trailing blank lines are removed."""
        assert wrapped("  \nhello\n", 72) == "hello"

    def test_empty_text(self):
        """Test empty input."""
        assert wrapped("", 72) == ""

    def test_invalid_width(self):
        """Test width below 1 is rejected."""
        with pytest.raises(ValueError):
            wrapped("text", 0)

    @pytest.mark.parametrize("width", [15, 20, 40, 72])
    def test_lines_within_width(self, width):
        """Test no line exceeds the width when no word does."""
        for line in wrapped(LOREM, width).split("\n"):
            assert len(line) <= width

    @pytest.mark.parametrize("width", [1, 3, 8])
    def test_lines_within_width_with_hard_breaks(self, width):
        """Test hard breaks keep every line within the width."""
        text = "supercalifragilistic expialidocious a bb ccc"
        for line in wrapped(text, width).split("\n"):
            assert len(line) <= width

    @pytest.mark.parametrize("width", [15, 20, 40, 72])
    def test_words_preserved_in_order(self, width):
        """Test wrapping only changes whitespace."""
        assert wrapped(LOREM, width).split() == LOREM.split()

    @pytest.mark.parametrize("width", [5, 10, 20, 72])
    def test_idempotent(self, width):
        """Test wrapping wrapped text again changes nothing."""
        text = LOREM + " incomprehensibilities"
        once = wrapped(text, width)
        assert wrapped(once, width) == once

    def test_hard_break_keeps_characters(self):
        """Test a hard-broken word loses no characters."""
        word = "x" * 100 + "y" * 50
        result = wrapped(f"start {word} end", 72)
        assert result.replace("\n", "").replace(" ", "") == f"start{word}end"
