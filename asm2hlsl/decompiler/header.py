"""
Header scanner for shader assembly listings.

The compiler writes reflection data as line comments in front of the
instructions. Each block starts with a title line (``Buffer Definitions:``,
``Resource Bindings:``, ``Input signature:``, ...) followed by one declaration
per line in a fixed column layout. The scanner turns those lines into
declarations on a :class:`~asm2hlsl.decompiler.reflection.Reflection`.
"""

import re
from enum import Enum, auto

from loguru import logger

from asm2hlsl.decompiler.errors import MalformedDeclarationError
from asm2hlsl.decompiler.models import (
    ConstantBuffer,
    Layout,
    Resource,
    ResourceKind,
    Signature,
    Structure,
    Variable,
)
from asm2hlsl.decompiler.reflection import Reflection

SECTION_PATTERN = re.compile(
    r"^(?P<title>[A-Za-z ]*?)\s*(?P<kind>Definitions|Bindings|signature):\s*$"
)
BIND_SLOT_PATTERN = re.compile(r"(\d+)$")
BIND_INFO_PREFIX = "Resource bind info for"

# Minimum number of fields per declaration line
BUFFER_VARIABLE_FIELDS = 6
STRUCT_MEMBER_FIELDS = 4
BINDING_FIELDS = 6
SIGNATURE_FIELDS = 6

LAYOUT_KEYWORDS = {"row_major": Layout.ROW_MAJOR, "column_major": Layout.COLUMN_MAJOR}


class Section(Enum):
    """Header block a comment line belongs to."""

    DEFINITIONS = auto()
    BINDINGS = auto()
    INPUT_SIGNATURE = auto()
    OUTPUT_SIGNATURE = auto()
    UNKNOWN = auto()


def classify_section(text: str) -> Section | None:
    """Recognize a section title line.

    Args:
        text: Comment text with the leading ``//`` removed

    Returns:
        The section the title opens, or None if the line is not a title
    """
    match = SECTION_PATTERN.match(text.strip())
    if match is None:
        return None
    match match.group("kind"):
        case "Definitions":
            return Section.DEFINITIONS
        case "Bindings":
            return Section.BINDINGS
    title = match.group("title")
    if title == "Input":
        return Section.INPUT_SIGNATURE
    if title == "Output":
        return Section.OUTPUT_SIGNATURE
    return Section.UNKNOWN


def semantic_to_name(semantic: str) -> str:
    """Derive a field name from a semantic (``SV_POSITION`` -> ``Position``)."""
    if semantic.upper().startswith("SV_"):
        semantic = semantic[3:]
    return semantic[:1].upper() + semantic[1:].lower()


def _parse_int(text: str, line: int, what: str) -> int:
    try:
        return int(text)
    except ValueError as e:
        raise MalformedDeclarationError(f"Invalid {what} '{text}'", line) from e


class HeaderScanner:
    """Feeds header comment lines into a reflection instance."""

    def __init__(self, reflection: Reflection):
        self.reflection = reflection
        self.section: Section | None = None
        self.buffer: ConstantBuffer | None = None
        self.bind_info: str | None = None
        self.structures: list[Structure] = []
        self.layout = Layout.DEFAULT

    def scan(self, text: str) -> None:
        """Scan every line of a listing."""
        for line_number, line in enumerate(text.splitlines(), start=1):
            self.feed(line, line_number)
        self._close_buffer()

    def feed(self, line: str, line_number: int) -> None:
        """Process one line of the listing.

        Non-comment lines end the current section. Comment lines are routed
        to the parser of the current section.

        Raises:
            MalformedDeclarationError: If a declaration has too few fields
        """
        stripped = line.strip()
        if not stripped.startswith("//"):
            if stripped and self.section is not None:
                self._close_buffer()
                self.section = None
            return

        body = stripped[2:].strip()
        if not body or "=" in body or body.startswith("-") or body.startswith("Name "):
            return

        section = classify_section(body)
        if section is not None:
            self._close_buffer()
            logger.debug(f"Header section {section.name} at line {line_number}")
            self.section = section
            return

        match self.section:
            case Section.DEFINITIONS:
                self._parse_definition(body, line_number)
            case Section.BINDINGS:
                self._parse_binding(body, line_number)
            case Section.INPUT_SIGNATURE:
                signature = self._parse_signature(body, line_number)
                if signature is not None:
                    self.reflection.add_input_signature(signature)
            case Section.OUTPUT_SIGNATURE:
                signature = self._parse_signature(body, line_number)
                if signature is not None:
                    self.reflection.add_output_signature(signature)
            case _:
                pass

    def _close_buffer(self) -> None:
        if self.buffer is not None:
            self.reflection.add_constant_buffer(self.buffer)
            self.buffer = None

    def _parse_definition(self, body: str, line: int) -> None:
        if body.startswith(BIND_INFO_PREFIX):
            self.bind_info = body[len(BIND_INFO_PREFIX) :].strip().replace("$", "")
            return

        fields = body.replace("//", " ").split()
        if fields[0] in LAYOUT_KEYWORDS:
            self.layout = LAYOUT_KEYWORDS[fields[0]]
            fields = fields[1:]
            if not fields:
                return

        match fields[0]:
            case "cbuffer" | "tbuffer":
                if len(fields) < 2:
                    raise MalformedDeclarationError("Buffer declaration without name", line)
                self._close_buffer()
                self.buffer = ConstantBuffer(name=fields[1].replace("$", ""))
            case "{":
                pass
            case "struct":
                if len(fields) < 2:
                    raise MalformedDeclarationError("Struct declaration without name", line)
                self.structures.append(Structure(name=fields[1]))
            case "}":
                self._close_block(fields, line)
            case _:
                self._parse_variable(fields, line)

    def _close_block(self, fields: list[str], line: int) -> None:
        if self.structures:
            structure = self.structures.pop()
            self.reflection.add_structure(structure)
            name = fields[1].rstrip(";") if len(fields) > 1 else ""
            if name == "$Element":
                if self.bind_info is not None:
                    self.reflection.add_uav_struct_pair(self.bind_info, structure.name)
            elif name:
                # Struct-typed field: "} light; // Offset: 0 Size: 32"
                self._add_variable([structure.name, *fields[1:]], line)
        elif self.buffer is not None:
            self._close_buffer()
        else:
            self.bind_info = None

    def _parse_variable(self, fields: list[str], line: int) -> None:
        if not self.structures and self.buffer is None:
            logger.debug(f"Ignoring definition outside of a block at line {line}")
            return
        self._add_variable(fields, line)

    def _add_variable(self, fields: list[str], line: int) -> None:
        required = STRUCT_MEMBER_FIELDS if self.structures else BUFFER_VARIABLE_FIELDS
        if len(fields) < required:
            raise MalformedDeclarationError(
                f"Expected at least {required} fields in variable declaration, "
                f"got {len(fields)}",
                line,
            )
        variable = Variable(
            type_name=fields[0],
            name=fields[1].rstrip(";"),
            offset=_parse_int(fields[3], line, "offset"),
            size=_parse_int(fields[5], line, "size") if len(fields) > 5 else 0,
            layout=self.layout,
        )
        self.layout = Layout.DEFAULT
        if self.structures:
            self.structures[-1].variables.append(variable)
        elif self.buffer is not None:
            self.buffer.variables.append(variable)

    def _parse_binding(self, body: str, line: int) -> None:
        fields = body.split()
        if len(fields) < BINDING_FIELDS:
            raise MalformedDeclarationError(
                f"Expected {BINDING_FIELDS} fields in resource binding, "
                f"got {len(fields)}",
                line,
            )
        name, kind, format_name, dimension, bind_name, count = fields[:BINDING_FIELDS]
        slot = BIND_SLOT_PATTERN.search(bind_name)
        if slot is None:
            raise MalformedDeclarationError(f"Invalid bind slot '{bind_name}'", line)
        self.reflection.add_resource(
            Resource(
                name=name.replace("$", ""),
                kind=ResourceKind.from_text(kind),
                format=format_name,
                dimension=dimension,
                bind=int(slot.group(1)),
                bind_name=bind_name,
                count=_parse_int(count, line, "count"),
            )
        )

    def _parse_signature(self, body: str, line: int) -> Signature | None:
        if body.startswith("no "):
            return None
        fields = body.split()
        if len(fields) < SIGNATURE_FIELDS:
            raise MalformedDeclarationError(
                f"Expected at least {SIGNATURE_FIELDS} fields in signature, "
                f"got {len(fields)}",
                line,
            )
        semantic, index, mask, register, system_value, format_name = fields[:6]
        return Signature(
            semantic=semantic,
            semantic_index=_parse_int(index, line, "semantic index"),
            mask=mask,
            register=int(register) if register.isdigit() else None,
            register_name=register,
            system_value=system_value,
            format=format_name,
            var_name=semantic_to_name(semantic),
        )
