"""
Swizzle and literal helpers.

Operands of the listing are strings such as ``-|r0.xyzx|``, ``cb0[2].w`` or
``float4(1.000000, 0, 0, 0)``. The helpers in this module split them into
modifiers, base expression and trailing component selector, and rewrite the
selector so that an operand supplies exactly the components its destination
expects.
"""

import re

from asm2hlsl.decompiler.constants import COMPONENTS
from asm2hlsl.decompiler.errors import DecodeError
from asm2hlsl.decompiler.models import LiteralInfo, SwizzleInfo

NUMBER_PATTERN = re.compile(
    r"^[-+]?(0x[0-9a-fA-F]+|\d+\.?\d*(e[-+]?\d+)?|\.\d+(e[-+]?\d+)?)$", re.IGNORECASE
)

# Literal vector constructor, e.g. float3(1.0, 0, 2.5) or l(1.0, 2.0)
CONSTRUCTOR_PATTERN = re.compile(r"^(float|int|uint|double|half|bool|l)([1-4]?)\((.*)\)$")


def find_closing(text: str, start: int, opening: str = "(", closing: str = ")") -> int:
    """Find the index of the bracket closing the one at ``start``.

    Returns:
        Index of the closing bracket, or -1 if it is missing
    """
    depth = 0
    for i in range(start, len(text)):
        if text[i] == opening:
            depth += 1
        elif text[i] == closing:
            depth -= 1
            if depth == 0:
                return i
    return -1


def split_modifiers(operand: str) -> tuple[bool, str, bool]:
    """Split an operand into negation, inner expression and absolute value.

    Both the listing form ``-|r0.x|`` and the generated form ``-abs(r0.x)``
    are recognized.

    Args:
        operand: Operand text

    Returns:
        Tuple of (negated, inner expression, absolute)
    """
    negate = operand.startswith("-") and not NUMBER_PATTERN.match(operand)
    inner = operand[1:] if negate else operand
    absolute = False
    if len(inner) > 2 and inner.startswith("|") and inner.endswith("|"):
        inner = inner[1:-1]
        absolute = True
    elif inner.startswith("abs(") and find_closing(inner, 3) == len(inner) - 1:
        inner = inner[4:-1]
        absolute = True
    return negate, inner, absolute


def apply_modifiers(inner: str, negate: bool, absolute: bool) -> str:
    """Re-apply modifiers removed by :func:`split_modifiers`."""
    text = f"abs({inner})" if absolute else inner
    return f"-{text}" if negate else text


def split_selector(expr: str) -> tuple[str, str]:
    """Split a trailing ``.xyzw`` selector off an expression.

    Args:
        expr: Expression without modifiers

    Returns:
        Tuple of (base expression, selector letters); letters are empty if the
        expression has no valid selector
    """
    dot = expr.rfind(".")
    if dot <= 0:
        return expr, ""
    letters = expr[dot + 1 :]
    if 1 <= len(letters) <= 4 and all(c in COMPONENTS for c in letters):
        return expr[:dot], letters
    return expr, ""


def to_swizzle_info(expr: str) -> SwizzleInfo:
    """Parse the trailing component selector of an expression.

    Literals and float/int/uint constructors never carry a selector.

    Args:
        expr: Expression, possibly with sign and absolute-value modifiers

    Returns:
        Selector description; empty if no valid selector is present
    """
    _, inner, _ = split_modifiers(expr)
    if CONSTRUCTOR_PATTERN.match(inner) or NUMBER_PATTERN.match(inner):
        return SwizzleInfo()
    _, letters = split_selector(inner)
    return SwizzleInfo(letters)


def split_arguments(text: str) -> list[str]:
    """Split a comma-separated argument list on top-level commas."""
    args: list[str] = []
    depth = 0
    current = ""
    for char in text:
        if char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        if char == "," and depth == 0:
            args.append(current.strip())
            current = ""
        else:
            current += char
    if current.strip():
        args.append(current.strip())
    return args


def is_literal(expr: str) -> LiteralInfo | None:
    """Classify an operand as a numeric literal or a literal vector constructor.

    Args:
        expr: Operand text

    Returns:
        Literal description, or None if the operand is not a literal
    """
    if NUMBER_PATTERN.match(expr):
        return LiteralInfo([expr], "." in expr)

    match = CONSTRUCTOR_PATTERN.match(expr)
    if match is None:
        return None
    values = split_arguments(match.group(3))
    if not values or not all(NUMBER_PATTERN.match(value) for value in values):
        return None
    return LiteralInfo(values, all("." in value for value in values))


def select_literal(expr: str, target: SwizzleInfo) -> str:
    """Select the components of a literal constructor named by ``target``.

    Raises:
        DecodeError: If the target addresses a component the literal lacks
    """
    match = CONSTRUCTOR_PATTERN.match(expr)
    if match is None:
        return expr
    base = "float" if match.group(1) == "l" else match.group(1)
    values = split_arguments(match.group(3))
    if target.count == 0:
        return expr
    selected = []
    for i in target.index:
        if i >= len(values):
            raise DecodeError(f"Literal {expr} has no component {COMPONENTS[i]}")
        selected.append(values[i])
    if len(selected) == 1:
        return selected[0]
    return f"{base}{len(selected)}({', '.join(selected)})"


def rewrite_selector(expr: str, target: SwizzleInfo) -> str:
    """Rewrite the trailing selector so it has exactly ``target.count`` letters.

    Component ``i`` of the target takes letter ``i`` of the source selector,
    wrapping around when the source selector is shorter. A selector that
    already equals the target pattern is left as is.

    Args:
        expr: Expression without modifiers
        target: Destination component selection

    Returns:
        Expression with the rewritten selector
    """
    base, letters = split_selector(expr)
    if not letters or target.count == 0 or letters == target.pattern:
        return expr
    rewritten = "".join(letters[i % len(letters)] for i in target.index)
    return f"{base}.{rewritten}"


def as_integer(expr: str, cast: str = "asuint") -> str:
    """Reinterpret an operand as integer bits unless it is an integer literal.

    Args:
        expr: Operand text
        cast: Reinterpretation intrinsic, ``asuint`` or ``asint``

    Returns:
        Expression usable as an integer operand
    """
    literal = is_literal(expr)
    if literal is not None and not any("." in value for value in literal.values):
        if literal.count == 1 and NUMBER_PATTERN.match(expr):
            return expr
        base = "uint" if cast == "asuint" else "int"
        return f"{base}{literal.count}({', '.join(literal.values)})"
    return f"{cast}({expr})"


INDEXED_PATTERN = re.compile(r"^(?P<register>[A-Za-z_]\w*)\[(?P<index>[^\[\]]+)\](?P<rest>.*)$")
INDEX_EXPRESSION_PATTERN = re.compile(r"^(?P<register>[^\s+]+)(\s*\+\s*(?P<offset>\d+))?$")


def index_expression(text: str) -> tuple[str, int] | None:
    """Parse a relative register index such as ``r0.x + 3``.

    Returns:
        Tuple of (integer view of the index register, constant offset), or
        None if the index is a plain number
    """
    text = text.strip()
    if text.isdigit():
        return None
    match = INDEX_EXPRESSION_PATTERN.match(text)
    if match is None:
        return None
    offset = int(match.group("offset") or 0)
    return f"asuint({match.group('register')})", offset


def normalize_indexed(operand: str) -> str:
    """Rewrite a relatively indexed register into valid index syntax.

    ``x0[r0.x + 1].xy`` becomes ``x0[asuint(r0.x) + 1].xy``; other operands are
    returned unchanged.
    """
    match = INDEXED_PATTERN.match(operand)
    if match is None:
        return operand
    parsed = index_expression(match.group("index"))
    if parsed is None:
        return operand
    register, offset = parsed
    index = f"{register} + {offset}" if offset else register
    return f"{match.group('register')}[{index}]{match.group('rest')}"
