"""Tests for the lexer."""

import pytest
from cas import Lexer, Token, TokenKind, tokenize, LexError


class TestTokens:
    """Tests for individual token kinds."""

    def test_single_character_operators(self):
        """Each operator character maps to its own token."""
        kinds = [t.kind for t in tokenize("+-*/%^()")]
        assert kinds == [
            TokenKind.ADD, TokenKind.SUB, TokenKind.MUL, TokenKind.DIV,
            TokenKind.MOD, TokenKind.POW, TokenKind.OPEN_PAREN, TokenKind.CLOSE_PAREN,
        ]

    def test_number(self):
        """A run of digits is one NUMBER with its integer value."""
        tokens = tokenize("1234")
        assert tokens == [Token(TokenKind.NUMBER, "1234", 0, 1234)]

    def test_identifier(self):
        """A run of letters is one IDENTIFIER."""
        tokens = tokenize("abc")
        assert tokens == [Token(TokenKind.IDENTIFIER, "abc", 0, "abc")]

    def test_minus_is_never_part_of_a_literal(self):
        """A leading minus lexes as a separate SUB token."""
        tokens = tokenize("-5")
        assert [t.kind for t in tokens] == [TokenKind.SUB, TokenKind.NUMBER]
        assert tokens[1].value == 5

    def test_maximal_munch(self):
        """Digits and letters split where the character class changes."""
        tokens = tokenize("12ab34")
        assert [t.text for t in tokens] == ["12", "ab", "34"]
        assert [t.kind for t in tokens] == [
            TokenKind.NUMBER, TokenKind.IDENTIFIER, TokenKind.NUMBER]


class TestSpans:
    """Tests for whitespace handling and source positions."""

    def test_whitespace_skipped(self):
        """Whitespace between tokens produces no tokens."""
        tokens = tokenize("  2 \t+\n x  ")
        assert [t.text for t in tokens] == ["2", "+", "x"]

    def test_token_positions(self):
        """Tokens record their start offset and end."""
        tokens = tokenize("10 + abc")
        assert [(t.start, t.end) for t in tokens] == [(0, 2), (3, 4), (5, 8)]

    def test_empty_input(self):
        """Empty and blank input produce no tokens."""
        assert tokenize("") == []
        assert tokenize("   ") == []


class TestLexErrors:
    """Tests for lexical errors."""

    def test_unexpected_character(self):
        """An unknown character raises LexError with its position."""
        with pytest.raises(LexError) as excinfo:
            tokenize("2 + $")
        assert excinfo.value.position == 4
        assert excinfo.value.char == "$"

    def test_error_is_lazy(self):
        """Tokens before the bad character are produced first."""
        lexer = Lexer("x + 3.5")
        assert next(lexer).text == "x"
        assert next(lexer).text == "+"
        assert next(lexer).text == "3"
        with pytest.raises(LexError):
            next(lexer)

    def test_iteration_ends_after_error(self):
        """No further tokens come after a lexical error."""
        lexer = Lexer("# 1 2")
        with pytest.raises(LexError):
            next(lexer)
        assert list(lexer) == []

    def test_non_ascii_letters_rejected(self):
        """Only ASCII letters form identifiers."""
        with pytest.raises(LexError):
            tokenize("é")

    def test_literal_out_of_range(self):
        """Literals beyond 64 bits are rejected."""
        assert tokenize("9223372036854775807")[0].value == 2 ** 63 - 1
        with pytest.raises(LexError):
            tokenize("9223372036854775808")
