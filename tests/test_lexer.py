"""
Comprehensive tests for lexer.py module.

Tests cover:
- TokenType: token type enumeration
- Token: token class with equality and representation
- ShellLexer: quoting, escaping, pipes and the external marker
- QuoteTracker: quote and escape tracking
- Lenient tokenization for completion
- Reconstruction round trip
"""

import pytest

from cmd3.exceptions import LexError, UnterminatedEscapeError, UnterminatedQuoteError
from cmd3.lexer import (
    QuoteTracker,
    ShellLexer,
    Token,
    TokenType,
    join_tokens,
    quote_word,
    tokenize,
    tokenize_lenient,
)


def values(tokens):
    return [t.value for t in tokens]


# =============================================================================
# TokenType / Token Tests
# =============================================================================

class TestTokenType:
    """Tests for TokenType enum."""

    def test_token_type_values(self):
        """Test token type values."""
        assert TokenType.WORD.value == "word"
        assert TokenType.PIPE.value == "pipe"
        assert TokenType.EOF.value == "eof"


class TestToken:
    """Tests for Token class."""

    def test_token_creation(self):
        token = Token(TokenType.WORD, "hello")
        assert token.type == TokenType.WORD
        assert token.value == "hello"
        assert token.position == 0
        assert token.end == 5
        assert token.complete

    def test_token_repr(self):
        token = Token(TokenType.WORD, "test", position=10, external=True)
        repr_str = repr(token)
        assert "word" in repr_str
        assert "test" in repr_str
        assert "10" in repr_str
        assert "external" in repr_str

    def test_token_equality(self):
        assert Token(TokenType.WORD, "hello") == Token(TokenType.WORD, "hello", position=3)
        assert Token(TokenType.WORD, "hello") != Token(TokenType.WORD, "world")
        assert Token(TokenType.WORD, "|") != Token(TokenType.PIPE, "|")
        assert Token(TokenType.WORD, "wc") != Token(TokenType.WORD, "wc", external=True)
        assert Token(TokenType.WORD, "hello") != "not a token"


# =============================================================================
# ShellLexer Tests
# =============================================================================

class TestShellLexer:
    """Tests for ShellLexer class."""

    def test_lexer_empty_string(self):
        tokens = ShellLexer("").tokenize()
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_lexer_multiple_words(self):
        tokens = ShellLexer("echo hello world").tokenize()
        assert len(tokens) == 4  # 3 words + EOF
        assert values(tokens[:3]) == ["echo", "hello", "world"]

    def test_whitespace_handling(self):
        assert values(tokenize("  echo \t  hello  ")) == ["echo", "hello"]

    def test_single_quotes_group_whitespace(self):
        tokens = tokenize("echo 'hello world'")
        assert values(tokens) == ["echo", "hello world"]
        assert tokens[1].quoted

    def test_double_quotes_group_whitespace(self):
        assert values(tokenize('echo "hello world"')) == ["echo", "hello world"]

    def test_quotes_group_pipe(self):
        tokens = tokenize("echo 'a | b' \"c|d\"")
        assert all(t.type == TokenType.WORD for t in tokens)
        assert values(tokens) == ["echo", "a | b", "c|d"]

    def test_adjacent_quotes_join_one_word(self):
        assert values(tokenize("a\"b c\"'d'")) == ["ab cd"]

    def test_empty_quotes_make_empty_word(self):
        assert values(tokenize("echo '' \"\"")) == ["echo", "", ""]

    def test_escape_outside_quotes(self):
        assert values(tokenize(r"echo a\ b c\|d")) == ["echo", "a b", "c|d"]

    def test_escape_inside_quotes(self):
        assert values(tokenize(r'echo "say \"hi\"" ' + r"'it\'s'")) == ["echo", 'say "hi"', "it's"]

    def test_escaped_backslash(self):
        assert values(tokenize(r"echo a\\b")) == ["echo", "a\\b"]

    def test_pipe_token(self):
        tokens = tokenize("echo | cat")
        assert [t.type for t in tokens] == [TokenType.WORD, TokenType.PIPE, TokenType.WORD]
        assert tokens[1].position == 5

    def test_pipe_without_spaces(self):
        tokens = tokenize("a|b||c")
        assert [t.type for t in tokens] == [
            TokenType.WORD, TokenType.PIPE, TokenType.WORD,
            TokenType.PIPE, TokenType.PIPE, TokenType.WORD,
        ]

    def test_external_marker(self):
        tokens = tokenize("help | !wc -l")
        wc = tokens[2]
        assert wc.value == "wc"
        assert wc.external
        assert wc.position == 8
        assert not tokens[3].external

    def test_external_marker_on_quoted_word(self):
        tokens = tokenize("!'my prog' x")
        assert tokens[0].value == "my prog"
        assert tokens[0].external

    def test_marker_inside_word_is_literal(self):
        tokens = tokenize("echo a!b")
        assert tokens[1].value == "a!b"
        assert not tokens[1].external

    def test_marker_after_first_word_is_literal(self):
        tokens = tokenize("!grep !x | echo !y")
        assert values(tokens) == ["grep", "!x", "|", "echo", "!y"]
        assert [t.external for t in tokens if t.type == TokenType.WORD] == [True, False, False, False]

    def test_lone_marker_is_literal(self):
        tokens = tokenize("echo ! x")
        assert values(tokens) == ["echo", "!", "x"]
        assert not any(t.external for t in tokens)

    def test_quoted_marker_is_literal(self):
        tokens = tokenize("'!wc'")
        assert tokens[0].value == "!wc"
        assert not tokens[0].external

    def test_escaped_marker_is_literal(self):
        tokens = tokenize(r"\!wc")
        assert tokens[0].value == "!wc"
        assert not tokens[0].external

    def test_token_positions(self):
        tokens = tokenize("ab  'c d'")
        assert (tokens[0].position, tokens[0].end) == (0, 2)
        assert (tokens[1].position, tokens[1].end) == (4, 9)

    def test_unterminated_single_quote(self):
        with pytest.raises(UnterminatedQuoteError) as exc_info:
            tokenize("echo 'hello")
        assert exc_info.value.quote_char == "'"
        assert exc_info.value.position == 5
        assert exc_info.value.exit_code == 2

    def test_unterminated_double_quote(self):
        with pytest.raises(UnterminatedQuoteError):
            tokenize('echo "hello | wc')

    def test_escape_does_not_close_quote(self):
        with pytest.raises(UnterminatedQuoteError):
            tokenize(r"echo 'abc\'")

    def test_trailing_backslash(self):
        with pytest.raises(UnterminatedEscapeError):
            tokenize("echo abc\\")

    def test_lex_errors_share_base(self):
        assert issubclass(UnterminatedQuoteError, LexError)
        assert issubclass(UnterminatedEscapeError, LexError)


# =============================================================================
# Lenient Tokenization Tests
# =============================================================================

class TestLenientTokenize:
    """Tests for tokenize_lenient()."""

    def test_unterminated_quote_becomes_partial(self):
        tokens = tokenize_lenient("cat 'my fi")
        assert values(tokens) == ["cat", "my fi"]
        assert not tokens[-1].complete
        assert tokens[-1].position == 4
        assert tokens[-1].end == 10

    def test_trailing_escape_becomes_partial(self):
        tokens = tokenize_lenient("cat my\\")
        assert tokens[-1].value == "my"
        assert not tokens[-1].complete

    def test_balanced_line_matches_strict(self):
        line = "help | !wc -l"
        assert tokenize_lenient(line) == tokenize(line)
        assert all(t.complete for t in tokenize_lenient(line))


# =============================================================================
# QuoteTracker Tests
# =============================================================================

class TestQuoteTracker:
    """Tests for QuoteTracker class."""

    def test_tracker_initial_state(self):
        tracker = QuoteTracker()
        assert not tracker.is_quoted()
        assert not tracker.is_escaped()

    def test_tracker_enter_and_exit_quote(self):
        tracker = QuoteTracker()
        tracker.process_char("'")
        assert tracker.is_quoted()
        tracker.process_char("'")
        assert not tracker.is_quoted()

    def test_tracker_other_quote_is_literal(self):
        tracker = QuoteTracker()
        tracker.process_char("'")
        assert tracker.process_char('"')
        assert tracker.quote_char == "'"

    def test_tracker_escape_handling(self):
        tracker = QuoteTracker()
        assert not tracker.process_char('\\')
        assert tracker.process_char('"')
        assert not tracker.is_quoted()

    def test_tracker_reset(self):
        tracker = QuoteTracker()
        tracker.process_char("'")
        tracker.reset()
        assert not tracker.is_quoted()


# =============================================================================
# Round Trip Tests
# =============================================================================

class TestRoundTrip:
    """Tokenizing a reconstructed line yields the same tokens."""

    @pytest.mark.parametrize("line", [
        "echo hello world",
        "echo 'hello world' | upper",
        r'echo "a \"quoted\" word" it\'s',
        "help | !wc -l",
        "!'my prog' 'x|y' '' \\!literal",
        "echo back\\\\slash 'tab\there'",
    ])
    def test_join_then_tokenize(self, line):
        tokens = tokenize(line)
        assert tokenize(join_tokens(tokens)) == tokens

    def test_quote_word_plain(self):
        assert quote_word("upper") == "upper"

    def test_quote_word_special(self):
        assert tokenize(quote_word("a b|c 'd' \\e"))[0].value == "a b|c 'd' \\e"

    def test_quote_word_leading_marker(self):
        token = tokenize(quote_word("!x"))[0]
        assert token.value == "!x"
        assert not token.external


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
