"""Tokenizer for the instruction region of a shader assembly listing."""

from dataclasses import dataclass

from asm2hlsl.decompiler.errors import DecodeError

# Characters that end a token and are dropped
SEPARATORS = " \t\r\n,"

# Characters that end a token and form a token of their own
CUTOFFS = "{}():"


@dataclass(frozen=True)
class Token:
    """Lexical unit with its 1-based source line."""

    text: str
    line: int


def strip_comment(line: str) -> str:
    """Remove a trailing ``//`` comment from a line."""
    index = line.find("//")
    return line if index < 0 else line[:index]


def tokenize(text: str) -> list[Token]:
    """Split listing text into tokens, ignoring comments.

    Args:
        text: Listing text

    Returns:
        Tokens in source order
    """
    tokens: list[Token] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        current = ""
        for char in strip_comment(line):
            if char in SEPARATORS or char in CUTOFFS:
                if current:
                    tokens.append(Token(current, line_number))
                    current = ""
                if char in CUTOFFS:
                    tokens.append(Token(char, line_number))
            else:
                current += char
        if current:
            tokens.append(Token(current, line_number))
    return tokens


class Lexer:
    """Cursor over the tokens of a listing."""

    def __init__(self, text: str):
        self.tokens = tokenize(text)
        self.position = 0

    def at_end(self) -> bool:
        return self.position >= len(self.tokens)

    def peek(self, offset: int = 0) -> Token | None:
        """Return the token ``offset`` places ahead without consuming it."""
        index = self.position + offset
        if index < len(self.tokens):
            return self.tokens[index]
        return None

    def next(self) -> Token:
        """Consume and return the current token.

        Raises:
            DecodeError: If the token stream is exhausted
        """
        if self.at_end():
            raise DecodeError("Unexpected end of listing", self.line)
        token = self.tokens[self.position]
        self.position += 1
        return token

    def compare(self, text: str) -> bool:
        """Check whether the current token equals ``text``."""
        token = self.peek()
        return token is not None and token.text == text

    def skip_line(self) -> None:
        """Consume the remaining tokens of the current line."""
        if self.position == 0 or self.at_end():
            return
        line = self.tokens[self.position - 1].line
        while not self.at_end() and self.tokens[self.position].line == line:
            self.position += 1

    @property
    def line(self) -> int | None:
        """Line of the current token, or of the last token once exhausted."""
        if not self.tokens:
            return None
        return self.tokens[min(self.position, len(self.tokens) - 1)].line
