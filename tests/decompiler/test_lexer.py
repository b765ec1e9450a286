"""Tests for the decompiler lexer module."""

import pytest

from asm2hlsl.decompiler.errors import DecodeError
from asm2hlsl.decompiler.lexer import Lexer, strip_comment, tokenize


def texts(source: str) -> list[str]:
    return [token.text for token in tokenize(source)]


class TestTokenize:
    """Test splitting listing text into tokens."""

    def test_separators_are_dropped(self):
        assert texts("add r0.xyzw, r1.xyzw, r2.xyzw") == [
            "add",
            "r0.xyzw",
            "r1.xyzw",
            "r2.xyzw",
        ]

    def test_cutoffs_are_own_tokens(self):
        assert texts("mov r0.xy, l(1.0, 2.0, 0, 0)") == [
            "mov",
            "r0.xy",
            "l",
            "(",
            "1.0",
            "2.0",
            "0",
            "0",
            ")",
        ]

    def test_braces_and_colons(self):
        assert texts("{ {1, 2}:") == ["{", "{", "1", "2", "}", ":"]

    def test_comments_are_ignored(self):
        assert texts("// Generated by the compiler\nret // done") == ["ret"]

    def test_brackets_stay_inside_tokens(self):
        assert texts("mov r0.x, cb0[r1.x + 2].y") == [
            "mov",
            "r0.x",
            "cb0[r1.x",
            "+",
            "2].y",
        ]

    def test_suffix_after_parenthesis(self):
        assert texts("resinfo_indexable(texture2d)_uint r0.xy") == [
            "resinfo_indexable",
            "(",
            "texture2d",
            ")",
            "_uint",
            "r0.xy",
        ]

    def test_line_numbers(self):
        tokens = tokenize("ps_4_0\n\n  mov r0.x, r1.x\n")
        assert [(t.text, t.line) for t in tokens] == [
            ("ps_4_0", 1),
            ("mov", 3),
            ("r0.x", 3),
            ("r1.x", 3),
        ]

    def test_empty_text(self):
        assert tokenize("") == []

    def test_strip_comment(self):
        assert strip_comment("mov r0.x, r1.x // copy") == "mov r0.x, r1.x "
        assert strip_comment("no comment") == "no comment"


class TestLexer:
    """Test the token cursor."""

    def test_next_and_peek(self):
        lexer = Lexer("mov r0.x, r1.x")
        assert lexer.peek().text == "mov"
        assert lexer.peek(2).text == "r1.x"
        assert lexer.next().text == "mov"
        assert lexer.peek().text == "r0.x"

    def test_peek_past_end(self):
        lexer = Lexer("ret")
        assert lexer.peek(1) is None

    def test_next_at_end_raises(self):
        lexer = Lexer("ret")
        lexer.next()
        assert lexer.at_end()
        with pytest.raises(DecodeError) as excinfo:
            lexer.next()
        assert excinfo.value.line == 1

    def test_compare(self):
        lexer = Lexer("loop")
        assert lexer.compare("loop")
        assert not lexer.compare("endloop")
        lexer.next()
        assert not lexer.compare("loop")

    def test_skip_line(self):
        lexer = Lexer("dcl_sampler s0, mode_default\nret")
        lexer.next()
        lexer.skip_line()
        assert lexer.next().text == "ret"

    def test_skip_line_before_first_token(self):
        lexer = Lexer("ret")
        lexer.skip_line()
        assert lexer.peek().text == "ret"

    def test_line_property(self):
        lexer = Lexer("ps_4_0\nret")
        assert lexer.line == 1
        lexer.next()
        assert lexer.line == 2
        lexer.next()
        assert lexer.line == 2
        assert Lexer("").line is None
