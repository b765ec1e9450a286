"""
Data models and structures for the shader assembly decompiler.

This module contains the dataclass definitions used throughout the decompiler
to represent header declarations, resolved symbols and swizzle metadata.
"""

from dataclasses import dataclass, field
from enum import Enum, auto

from asm2hlsl.decompiler.constants import COMPONENTS, INDENT, STAGE_TAG_PATTERN


class ShaderStage(Enum):
    """Shader stage identified by the stage tag of the listing."""

    VERTEX = "vs"
    PIXEL = "ps"
    GEOMETRY = "gs"
    DOMAIN = "ds"
    HULL = "hs"
    COMPUTE = "cs"

    @property
    def prefix(self) -> str:
        """Prefix of the generated struct names, e.g. ``VS``."""
        return self.value.upper()

    @property
    def suffix(self) -> str:
        """Suffix appended to the output base path, e.g. ``_vs``."""
        return f"_{self.value}"

    @classmethod
    def from_tag(cls, tag: str) -> "ShaderStage | None":
        """Recognize a stage tag token such as ``ps_5_0``.

        Args:
            tag: Token text

        Returns:
            The matching stage, or None if the token is not a stage tag
        """
        match = STAGE_TAG_PATTERN.match(tag)
        if match is None:
            return None
        return cls(match.group(1))


class ResourceKind(Enum):
    """Kind of a resource binding as listed in the ``Bindings:`` section."""

    TEXTURE = auto()
    SAMPLER = auto()
    SAMPLER_COMPARISON = auto()
    UAV = auto()
    CBUFFER = auto()
    TBUFFER = auto()
    UNKNOWN = auto()

    @classmethod
    def from_text(cls, text: str) -> "ResourceKind":
        return {
            "texture": cls.TEXTURE,
            "sampler": cls.SAMPLER,
            "sampler_c": cls.SAMPLER_COMPARISON,
            "uav": cls.UAV,
            "cbuffer": cls.CBUFFER,
            "tbuffer": cls.TBUFFER,
        }.get(text.lower(), cls.UNKNOWN)


class Layout(Enum):
    """Matrix packing order declared for a constant-buffer variable."""

    DEFAULT = auto()
    ROW_MAJOR = auto()
    COLUMN_MAJOR = auto()


@dataclass(frozen=True)
class SwizzleInfo:
    """Component selection of an expression.

    Attributes:
        pattern: Selected component letters in order, at most 4 of ``xyzw``.
            An empty pattern means no selector (scalar or whole value).
    """

    pattern: str = ""

    @property
    def count(self) -> int:
        return len(self.pattern)

    @property
    def index(self) -> tuple[int, ...]:
        return tuple(COMPONENTS.index(c) for c in self.pattern)

    @classmethod
    def from_indices(cls, indices: list[int] | tuple[int, ...]) -> "SwizzleInfo":
        return cls("".join(COMPONENTS[i] for i in indices))


@dataclass
class LiteralInfo:
    """Classification of a literal operand.

    Attributes:
        values: Component values as written
        has_point: True if every component contains a decimal point
    """

    values: list[str]
    has_point: bool

    @property
    def count(self) -> int:
        return len(self.values)


@dataclass
class Signature:
    """One row of an input or output signature.

    Attributes:
        semantic: Semantic name, e.g. ``TEXCOORD``
        semantic_index: Semantic index column
        mask: Component mask, e.g. ``xy``
        register: Register number, or None for named registers like ``oDepth``
        register_name: Register name as written in the listing
        system_value: System value column, e.g. ``NONE`` or ``POS``
        format: Component format, e.g. ``float``
        var_name: Field name derived from the semantic
        array_size: Number of registers sharing the semantic (after resolve)
        array_index: Position inside that group (after resolve)
    """

    semantic: str
    semantic_index: int
    mask: str
    register: int | None
    register_name: str
    system_value: str
    format: str
    var_name: str
    array_size: int = 1
    array_index: int = 0

    @property
    def component_count(self) -> int:
        if self.mask == "N/A":
            return 1
        return len(self.mask)

    @property
    def type_name(self) -> str:
        count = self.component_count
        return self.format if count == 1 else f"{self.format}{count}"

    @property
    def first_component(self) -> int:
        if self.mask and self.mask[0] in COMPONENTS:
            return COMPONENTS.index(self.mask[0])
        return 0


@dataclass
class Resource:
    """Resource binding from the ``Bindings:`` section.

    Attributes:
        name: Binding name with ``$`` removed
        kind: Resource kind
        format: Return format, e.g. ``float4``, ``struct`` or ``NA``
        dimension: Dimension tag, e.g. ``2d`` or ``r/w``
        bind: Register number of the binding
        bind_name: Bind column as written, e.g. ``t3``
        count: Number of consecutive registers (array size)
    """

    name: str
    kind: ResourceKind
    format: str
    dimension: str
    bind: int
    bind_name: str
    count: int = 1


@dataclass
class Variable:
    """One constant-buffer or structure field.

    Attributes:
        type_name: Declared type, e.g. ``float4x4`` or a structure name
        name: Field name, possibly array-decorated (``lights[4]``)
        offset: Byte offset inside the buffer or structure
        size: Byte size as listed (0 for structure members)
        layout: Matrix packing order
    """

    type_name: str
    name: str
    offset: int
    size: int = 0
    layout: Layout = Layout.DEFAULT


@dataclass
class ConstantBuffer:
    """Constant buffer with its variables.

    Attributes:
        name: Buffer name with ``$`` removed
        bind: Register number, resolved from the resource section
        size: Byte size computed from the last variable
        variables: Variables in declaration order
    """

    name: str
    bind: int = -1
    size: int = 0
    variables: list[Variable] = field(default_factory=list)


@dataclass
class Structure:
    """Named aggregate of variables used as structured-buffer element type."""

    name: str
    variables: list[Variable] = field(default_factory=list)


@dataclass
class ResourceInfo:
    """Resolved texture, sampler or UAV binding.

    Attributes:
        name: Declaration name
        type_name: HLSL type, e.g. ``Texture2D<uint4>``
        kind: Resource kind
        register: Register number of this entry
        dimension: Coordinate component count (1, 2, 3 or 4)
        array_size: Size of the declared array
        array_index: Index of this entry inside the array
        structure: Element structure for structured buffers
    """

    name: str
    type_name: str
    kind: ResourceKind
    register: int
    dimension: int
    array_size: int = 1
    array_index: int = 0
    structure: str | None = None

    @property
    def expanded_name(self) -> str:
        if self.array_size > 1:
            return f"{self.name}[{self.array_index}]"
        return self.name

    @property
    def is_structured(self) -> bool:
        return self.structure is not None

    @property
    def is_raw(self) -> bool:
        return "ByteAddressBuffer" in self.type_name


@dataclass
class SignatureInfo:
    """Resolved register of an input or output signature.

    Attributes:
        signature: The signature owning the register
        expression: Access expression, e.g. ``input.Texcoord[1]`` or ``vertexId``
    """

    signature: Signature
    expression: str


@dataclass
class ConstantInfo:
    """Resolved constant-buffer register entry.

    Attributes:
        name: Field access path, e.g. ``worldMatrix`` or ``light.position``
        array_element: Array suffix, e.g. ``[2]`` or ``[1][3]``
        swizzle: Corrective swizzle when the field starts mid-register, e.g. ``.zw``
        type_name: Declared type of the field
        element_count: Components the field uses in this register
        component_offset: First component the field occupies in this register
    """

    name: str
    array_element: str
    swizzle: str
    type_name: str
    element_count: int
    component_offset: int = 0

    @property
    def expression(self) -> str:
        return f"{self.name}{self.array_element}"


@dataclass
class Parameter:
    """Entry-point parameter.

    Attributes:
        type_name: Parameter type
        name: Parameter name
        semantic: Semantic, empty for stream parameters
        qualifier: Leading qualifier, e.g. ``triangle`` or ``inout``
    """

    type_name: str
    name: str
    semantic: str = ""
    qualifier: str = ""

    @property
    def declaration(self) -> str:
        text = f"{self.type_name} {self.name}"
        if self.qualifier:
            text = f"{self.qualifier} {text}"
        if self.semantic:
            text += f" : {self.semantic}"
        return text


@dataclass
class DecompilerConfig:
    """Options of one conversion.

    Attributes:
        entry_point: Name of the generated entry-point function
        indent: Indentation unit of generated code
        strict_nesting: Raise on unbalanced control-flow blocks instead of warning
    """

    entry_point: str = "main"
    indent: str = INDENT
    strict_nesting: bool = False
