"""
Tests for the statement tokenizer.
"""

from exportgraph.parser.lexer import KEYWORDS, Token, TokenKind, tokenize


def kinds(text):
    return [token.kind for token in tokenize(text)]


class TestTokenize:
    """Tests for the default regex tokenizer."""

    def test_execute_method_statement(self):
        """Test the token kinds of a method call."""
        assert kinds('execute method "a.jcl"') == [
            TokenKind.EXECUTE,
            TokenKind.WS,
            TokenKind.METHOD,
            TokenKind.WS,
            TokenKind.STRING_CONSTANT,
            TokenKind.EOF,
        ]

    def test_keywords_are_case_insensitive(self):
        """Test that keywords match in any case but keep their literal."""
        tokens = list(tokenize("EXECUTE Method"))
        assert tokens[0] == Token(TokenKind.EXECUTE, "EXECUTE")
        assert tokens[2] == Token(TokenKind.METHOD, "Method")

    def test_compound_action_keywords(self):
        """Test that multi-word action keywords are single tokens."""
        assert kinds("formswap")[0] is TokenKind.FORM_SWAP
        assert kinds("OptimiseAllDatabasesIndexes")[0] is TokenKind.OPTIMISE_ALL_DATABASES_INDEXES

    def test_identifiers_and_numbers(self):
        """Test that non-keywords are identifiers and digits are numbers."""
        tokens = list(tokenize("total = 42"))
        assert tokens[0] == Token(TokenKind.IDENTIFIER, "total")
        assert tokens[2] == Token(TokenKind.OPERATOR, "=")
        assert tokens[4] == Token(TokenKind.NUMBER, "42")

    def test_newlines(self):
        """Test that LF and CRLF are single newline tokens."""
        assert kinds("a\nb\r\nc") == [
            TokenKind.IDENTIFIER,
            TokenKind.NEWLINE,
            TokenKind.IDENTIFIER,
            TokenKind.NEWLINE,
            TokenKind.IDENTIFIER,
            TokenKind.EOF,
        ]

    def test_comment_hides_keywords(self):
        """Test that keywords inside a comment are not tokenized."""
        assert kinds("/* execute method x */") == [TokenKind.COMMENT, TokenKind.EOF]

    def test_unterminated_string_is_illegal(self):
        """Test that an open string becomes an ILLEGAL token."""
        assert kinds('"abc')[0] is TokenKind.ILLEGAL

    def test_unterminated_comment_is_illegal(self):
        """Test that an open comment swallows the rest as ILLEGAL."""
        assert kinds("/* never closed\nexecute") == [TokenKind.ILLEGAL, TokenKind.EOF]

    def test_empty_text(self):
        """Test that empty text yields only EOF."""
        assert list(tokenize("")) == [Token(TokenKind.EOF, "")]

    def test_keyword_table(self):
        """Test that lexeme kinds are not keywords."""
        assert KEYWORDS["execute"] is TokenKind.EXECUTE
        assert "identifier" not in KEYWORDS
        assert "eof" not in KEYWORDS
