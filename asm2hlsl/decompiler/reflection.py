"""
Reflection resolver for shader assembly listings.

The header of a listing declares constant buffers, resource bindings and the
input/output signatures. This module collects those declarations and resolves
them into dictionaries keyed by register name (``v0``, ``t3``, ``cb0[2].zw``),
which the decoder queries to turn register operands into named expressions.
"""

import re
from dataclasses import dataclass
from math import prod

from loguru import logger

from asm2hlsl.decompiler.constants import (
    BUILTIN_INPUT_REGISTERS,
    COMPONENTS,
    DEFAULT_SAMPLER_DIMENSION,
    DEFAULT_TEXTURE_FORMAT,
    MATRIX_TYPE_PATTERN,
    SLOT_SIZE,
    STRUCT_SYSTEM_VALUES,
    SYSTEM_VALUE_PARAMETERS,
    TEXTURE_TYPES,
    TYPE_ELEMENT_COUNTS,
    UAV_TYPES,
)
from asm2hlsl.decompiler.models import (
    ConstantBuffer,
    ConstantInfo,
    Layout,
    Parameter,
    Resource,
    ResourceInfo,
    ResourceKind,
    Signature,
    SignatureInfo,
    Structure,
    SwizzleInfo,
    Variable,
)
from asm2hlsl.decompiler.swizzle import (
    CONSTRUCTOR_PATTERN,
    apply_modifiers,
    index_expression,
    is_literal,
    rewrite_selector,
    select_literal,
    split_modifiers,
    split_selector,
)

CBUFFER_REGISTER_PATTERN = re.compile(r"^cb(?P<bind>\d+)\[(?P<index>[^\[\]]+)\]$")
GS_INPUT_PATTERN = re.compile(r"^v\[(?P<vertex>\d+)\]\[(?P<register>\d+)\]$")
ARRAY_DIMENSION_PATTERN = re.compile(r"\[(\d+)\]")
VECTOR_SUFFIX_PATTERN = re.compile(r"\d(x\d)?$")


@dataclass
class ConstantArray:
    """One-dimensional constant-buffer array reachable by relative indexing.

    Attributes:
        bind: Constant-buffer register
        name: Field access path
        first_slot: Register of the first element
        length: Number of elements
        rows: Registers per element
        columns: Components used per register
    """

    bind: int
    name: str
    first_slot: int
    length: int
    rows: int
    columns: int


def split_array_name(name: str) -> tuple[str, list[int]]:
    """Split ``lights[4][2]`` into ``("lights", [4, 2])``."""
    bracket = name.find("[")
    if bracket < 0:
        return name, []
    dims = [int(d) for d in ARRAY_DIMENSION_PATTERN.findall(name[bracket:])]
    return name[:bracket], dims


def register_layout(variable: Variable) -> tuple[str, int, int]:
    """Compute how a constant-buffer variable maps onto 16-byte registers.

    Matrices are redeclared ``row_major`` so that ``name[i]`` is register ``i``.
    A column-major matrix stores one column per register, so it is redeclared
    with rows and columns swapped.

    Args:
        variable: Variable as listed in the header

    Returns:
        Tuple of (declared type, registers per element, components per register)
    """
    match = MATRIX_TYPE_PATTERN.match(variable.type_name)
    if match is not None:
        base, rows, columns = match.group(1), int(match.group(2)), int(match.group(3))
        if rows > 1 and columns > 1:
            if variable.layout == Layout.ROW_MAJOR:
                return variable.type_name, rows, columns
            return f"{base}{columns}x{rows}", columns, rows
    count = TYPE_ELEMENT_COUNTS.get(variable.type_name, 1)
    return variable.type_name, 1, min(count, 4)


def field_type(variable: Variable) -> str:
    """Declared type of a constant-buffer field, with its matrix packing."""
    type_name, rows, _ = register_layout(variable)
    if rows > 1:
        return f"row_major {type_name}"
    return type_name


def _unflatten(position: int, shape: list[int]) -> list[int]:
    indices = []
    for size in reversed(shape):
        indices.append(position % size)
        position //= size
    return list(reversed(indices))


def _semantic_text(signature: Signature) -> str:
    if signature.semantic_index:
        return f"{signature.semantic}{signature.semantic_index}"
    return signature.semantic


def _select_packed(entries: list[SignatureInfo], letters: str) -> SignatureInfo:
    # Several signatures may share one register with disjoint masks
    if letters:
        for entry in entries:
            if letters[0] in entry.signature.mask:
                return entry
    return entries[0]


def _field_selector(signature: Signature, letters: str) -> str:
    if not letters or letters == signature.mask:
        return ""
    offset = signature.first_component
    if offset:
        letters = "".join(
            COMPONENTS[max(COMPONENTS.index(c) - offset, 0)] for c in letters
        )
    return f".{letters}"


def _select_component(entries: list[ConstantInfo], letters: str) -> ConstantInfo:
    if letters:
        component = COMPONENTS.index(letters[0])
        for entry in entries:
            start = entry.component_offset
            if start <= component < start + entry.element_count:
                return entry
    return entries[0]


def _constant_selector(info: ConstantInfo, letters: str, start: int = 0) -> str:
    if not letters:
        return ""
    count = max(info.element_count, 1)
    remapped = "".join(
        COMPONENTS[(COMPONENTS.index(c) - start) % count] for c in letters
    )
    return f".{remapped}"


class Reflection:
    """Symbol tables of one listing.

    Declarations are added while the header is scanned. :meth:`resolve` then
    builds the register dictionaries, after which the tables are only queried.
    """

    def __init__(self) -> None:
        self.resources: list[Resource] = []
        self.input_signatures: list[Signature] = []
        self.output_signatures: list[Signature] = []
        self.constant_buffers: list[ConstantBuffer] = []
        self.structures: dict[str, Structure] = {}
        self.uav_structs: dict[str, str] = {}
        self._reset_resolved()

    def _reset_resolved(self) -> None:
        self.input_map: dict[str, list[SignatureInfo]] = {}
        self.output_map: dict[str, list[SignatureInfo]] = {}
        self.input_fields: list[str] = []
        self.output_fields: list[str] = []
        self.input_parameters: list[Parameter] = []
        self.textures: list[ResourceInfo] = []
        self.samplers: list[ResourceInfo] = []
        self.uavs: list[ResourceInfo] = []
        self.texture_map: dict[str, ResourceInfo] = {}
        self.sampler_map: dict[str, ResourceInfo] = {}
        self.uav_map: dict[str, ResourceInfo] = {}
        self.constant_map: dict[str, ConstantInfo] = {}
        self.constant_fields: dict[str, ConstantInfo] = {}
        self._slots: dict[tuple[int, int], list[ConstantInfo]] = {}
        self._arrays: list[ConstantArray] = []

    # Declarations

    def add_resource(self, resource: Resource) -> None:
        self.resources.append(resource)

    def add_input_signature(self, signature: Signature) -> None:
        self.input_signatures.append(signature)

    def add_output_signature(self, signature: Signature) -> None:
        self.output_signatures.append(signature)

    def add_constant_buffer(self, cbuffer: ConstantBuffer) -> None:
        self.constant_buffers.append(cbuffer)

    def add_structure(self, structure: Structure) -> None:
        """Register a structure; a second structure with the same name is ignored."""
        if structure.name in self.structures:
            return
        self.structures[structure.name] = structure

    def add_uav_struct_pair(self, name: str, struct_type_name: str) -> None:
        """Pair a structured resource with its element structure."""
        self.uav_structs.setdefault(name, struct_type_name)

    # Resolution

    def resolve(self) -> None:
        """Build the register dictionaries from the collected declarations."""
        self._reset_resolved()
        self._resolve_signatures(
            self.input_signatures, "v", "input", self.input_map, self.input_fields
        )
        self._resolve_signatures(
            self.output_signatures, "o", "output", self.output_map, self.output_fields
        )
        self._resolve_textures()
        self._resolve_samplers()
        self._resolve_uavs()
        for cbuffer in self.constant_buffers:
            self._resolve_constant_buffer(cbuffer)

        logger.debug(
            f"Resolved {len(self.input_signatures)} inputs, "
            f"{len(self.output_signatures)} outputs, {len(self.textures)} textures, "
            f"{len(self.samplers)} samplers, {len(self.uavs)} UAVs, "
            f"{len(self.constant_map)} constant registers"
        )

    def _resolve_signatures(
        self,
        signatures: list[Signature],
        prefix: str,
        struct_name: str,
        table: dict[str, list[SignatureInfo]],
        fields: list[str],
    ) -> None:
        groups: dict[str, list[Signature]] = {}
        for signature in signatures:
            groups.setdefault(signature.semantic, []).append(signature)

        is_input = prefix == "v"
        for group in groups.values():
            first = group[0]
            size = len(group)
            for index, signature in enumerate(group):
                signature.array_size = size
                signature.array_index = index

            if is_input and first.system_value not in STRUCT_SYSTEM_VALUES:
                type_name, name, semantic = SYSTEM_VALUE_PARAMETERS.get(
                    first.system_value,
                    (first.type_name, first.var_name, _semantic_text(first)),
                )
                self.input_parameters.append(Parameter(type_name, name, semantic))
                expressions = [name] * size
            else:
                array = f"[{size}]" if size > 1 else ""
                fields.append(
                    f"{first.type_name} {first.var_name}{array} : {_semantic_text(first)};"
                )
                base = f"{struct_name}.{first.var_name}"
                expressions = [f"{base}[{i}]" if size > 1 else base for i in range(size)]

            for signature, expression in zip(group, expressions, strict=True):
                info = SignatureInfo(signature, expression)
                if signature.register is None:
                    keys = [signature.register_name]
                else:
                    keys = [f"{prefix}{signature.register}", f"{prefix}[{signature.register}]"]
                for key in keys:
                    table.setdefault(key, []).append(info)

    def _structure_for(self, resource: Resource) -> str:
        structure = self.uav_structs.get(resource.name)
        if structure is None:
            logger.warning(f"No element structure declared for {resource.name}")
            return "uint"
        return structure

    def _expand_resource(
        self,
        resource: Resource,
        type_name: str,
        dimension: int,
        prefix: str,
        table: dict[str, ResourceInfo],
        declarations: list[ResourceInfo],
        structure: str | None = None,
    ) -> None:
        count = max(resource.count, 1)
        for index in range(count):
            info = ResourceInfo(
                name=resource.name,
                type_name=type_name,
                kind=resource.kind,
                register=resource.bind + index,
                dimension=dimension,
                array_size=count,
                array_index=index,
                structure=structure,
            )
            table.setdefault(f"{prefix}{resource.bind + index}", info)
            if index == 0:
                declarations.append(info)

    def _resolve_textures(self) -> None:
        for resource in self.resources:
            if resource.kind != ResourceKind.TEXTURE:
                continue
            dimension = resource.dimension.lower()
            structure = None
            if resource.format == "struct":
                structure = self._structure_for(resource)
                type_name, components = f"StructuredBuffer<{structure}>", 1
            elif resource.format == "byte" or dimension == "r/o":
                type_name, components = "ByteAddressBuffer", 1
            else:
                if dimension not in TEXTURE_TYPES:
                    logger.warning(
                        f"Unknown texture dimension '{resource.dimension}' "
                        f"for {resource.name}, assuming 2d"
                    )
                    dimension = DEFAULT_SAMPLER_DIMENSION
                type_name, components = TEXTURE_TYPES[dimension]
                if resource.format != DEFAULT_TEXTURE_FORMAT or "MS" in type_name:
                    type_name = f"{type_name}<{resource.format}>"
            self._expand_resource(
                resource,
                type_name,
                components,
                "t",
                self.texture_map,
                self.textures,
                structure,
            )

    def _resolve_samplers(self) -> None:
        textures = [r for r in self.resources if r.kind == ResourceKind.TEXTURE]
        samplers = [
            r
            for r in self.resources
            if r.kind in (ResourceKind.SAMPLER, ResourceKind.SAMPLER_COMPARISON)
        ]
        for ordinal, resource in enumerate(samplers):
            dimension = resource.dimension.lower()
            if dimension not in TEXTURE_TYPES:
                # Inherit from the texture at the same position
                if ordinal < len(textures):
                    dimension = textures[ordinal].dimension.lower()
                elif textures:
                    dimension = textures[0].dimension.lower()
                else:
                    logger.warning(
                        f"No texture for sampler {resource.name}, assuming 2d"
                    )
                    dimension = DEFAULT_SAMPLER_DIMENSION
            _, components = TEXTURE_TYPES.get(
                dimension, TEXTURE_TYPES[DEFAULT_SAMPLER_DIMENSION]
            )
            type_name = (
                "SamplerComparisonState"
                if resource.kind == ResourceKind.SAMPLER_COMPARISON
                else "SamplerState"
            )
            self._expand_resource(
                resource, type_name, components, "s", self.sampler_map, self.samplers
            )

    def _resolve_uavs(self) -> None:
        for resource in self.resources:
            if resource.kind != ResourceKind.UAV:
                continue
            dimension = resource.dimension.lower()
            structure = None
            if resource.format == "struct":
                structure = self._structure_for(resource)
                type_name, components = f"RWStructuredBuffer<{structure}>", 1
            elif resource.format == "byte" or dimension == "r/w":
                type_name, components = "RWByteAddressBuffer", 1
            else:
                if dimension not in UAV_TYPES:
                    logger.warning(
                        f"Unknown UAV dimension '{resource.dimension}' "
                        f"for {resource.name}, assuming 2d"
                    )
                    dimension = DEFAULT_SAMPLER_DIMENSION
                type_name, components = UAV_TYPES[dimension]
                type_name = f"{type_name}<{resource.format}>"
            self._expand_resource(
                resource, type_name, components, "u", self.uav_map, self.uavs, structure
            )

    def _resolve_constant_buffer(self, cbuffer: ConstantBuffer) -> None:
        for resource in self.resources:
            if resource.kind == ResourceKind.CBUFFER and resource.name == cbuffer.name:
                cbuffer.bind = resource.bind
                break
        else:
            if cbuffer.bind < 0:
                cbuffer.bind = self.constant_buffers.index(cbuffer)
                logger.warning(
                    f"No binding listed for cbuffer {cbuffer.name}, using b{cbuffer.bind}"
                )

        for variable in cbuffer.variables:
            self._expand_variable(cbuffer.bind, variable, variable.offset, "")
        cbuffer.size = max((v.offset + v.size for v in cbuffer.variables), default=0)

    def _expand_variable(
        self, bind: int, variable: Variable, offset: int, prefix: str
    ) -> None:
        base, dims = split_array_name(variable.name)
        name = f"{prefix}{base}"

        structure = self.structures.get(variable.type_name)
        if structure is not None:
            stride = self._structure_stride(structure)
            for position in range(prod(dims)):
                element = "".join(f"[{i}]" for i in _unflatten(position, dims))
                for member in structure.variables:
                    self._expand_variable(
                        bind,
                        member,
                        offset + position * stride + member.offset,
                        f"{name}{element}.",
                    )
            return

        _, rows, columns = register_layout(variable)
        shape = dims + [rows] if rows > 1 else dims
        slot = offset // SLOT_SIZE
        component = (offset % SLOT_SIZE) // 4
        if len(dims) == 1:
            self._arrays.append(ConstantArray(bind, name, slot, dims[0], rows, columns))

        for position in range(prod(shape)):
            element = "".join(f"[{i}]" for i in _unflatten(position, shape))
            swizzle = ""
            if position == 0 and component != 0:
                swizzle = "." + COMPONENTS[component : component + columns]
            info = ConstantInfo(
                name=name,
                array_element=element,
                swizzle=swizzle,
                type_name=variable.type_name,
                element_count=columns,
                component_offset=component if position == 0 else 0,
            )
            self.constant_map.setdefault(f"cb{bind}[{slot + position}]{swizzle}", info)
            self.constant_fields.setdefault(info.expression, info)
            self._slots.setdefault((bind, slot + position), []).append(info)

    def _byte_size(self, variable: Variable) -> int:
        if variable.size:
            return variable.size
        _, dims = split_array_name(variable.name)
        structure = self.structures.get(variable.type_name)
        if structure is not None:
            return self._structure_stride(structure) * prod(dims)
        _, rows, columns = register_layout(variable)
        registers = rows * prod(dims)
        return (registers - 1) * SLOT_SIZE + columns * 4

    def _structure_stride(self, structure: Structure) -> int:
        extent = max(
            (m.offset + self._byte_size(m) for m in structure.variables), default=0
        )
        return -(-extent // SLOT_SIZE) * SLOT_SIZE

    # Queries

    def query_name(self, operand: str) -> str | None:
        """Resolve a register operand into a named expression.

        Inputs and outputs are tried before textures, samplers, UAVs and
        constant buffers. Sign and absolute-value modifiers are re-applied to
        the result.

        Args:
            operand: Operand text, e.g. ``-|v1.xy|`` or ``cb0[3].x``

        Returns:
            The resolved expression, or None if no table knows the register
        """
        negate, inner, absolute = split_modifiers(operand)
        resolvers = (
            self._find_input,
            self._find_output,
            self._find_texture_name,
            self._find_sampler_name,
            self._find_uav_name,
            self._find_constant,
        )
        for resolver in resolvers:
            name = resolver(inner)
            if name is not None:
                return apply_modifiers(name, negate, absolute)
        return None

    def _find_signature(
        self, inner: str, table: dict[str, list[SignatureInfo]]
    ) -> str | None:
        base, letters = split_selector(inner)
        entries = table.get(base)
        if not entries:
            return None
        info = _select_packed(entries, letters)
        return info.expression + _field_selector(info.signature, letters)

    def _find_input(self, inner: str) -> str | None:
        name = self._find_signature(inner, self.input_map)
        if name is not None:
            return name

        base, letters = split_selector(inner)
        match = GS_INPUT_PATTERN.match(base)
        if match is not None:
            entries = self.input_map.get(f"v{match.group('register')}")
            if entries:
                info = _select_packed(entries, letters)
                expression = info.expression
                if expression.startswith("input."):
                    vertex = match.group("vertex")
                    expression = f"input[{vertex}].{expression[len('input.'):]}"
                return expression + _field_selector(info.signature, letters)

        builtin = BUILTIN_INPUT_REGISTERS.get(base)
        if builtin is not None:
            return builtin[1] + (f".{letters}" if letters else "")
        return None

    def _find_output(self, inner: str) -> str | None:
        return self._find_signature(inner, self.output_map)

    @staticmethod
    def _find_resource(inner: str, table: dict[str, ResourceInfo]) -> str | None:
        base, letters = split_selector(inner)
        info = table.get(base)
        if info is None:
            return None
        return info.expanded_name + (f".{letters}" if letters else "")

    def _find_texture_name(self, inner: str) -> str | None:
        return self._find_resource(inner, self.texture_map)

    def _find_sampler_name(self, inner: str) -> str | None:
        return self._find_resource(inner, self.sampler_map)

    def _find_uav_name(self, inner: str) -> str | None:
        return self._find_resource(inner, self.uav_map)

    def _find_constant(self, inner: str) -> str | None:
        info = self.constant_map.get(inner)
        if info is not None:
            return info.expression

        base, letters = split_selector(inner)
        match = CBUFFER_REGISTER_PATTERN.match(base)
        if match is None:
            return None
        bind = int(match.group("bind"))
        index = match.group("index").strip()
        if not index.isdigit():
            return self._find_constant_array(bind, index, letters)

        entries = self._slots.get((bind, int(index)))
        if not entries:
            return None
        info = _select_component(entries, letters)
        return info.expression + _constant_selector(
            info, letters, info.component_offset
        )

    def _find_constant_array(self, bind: int, index: str, letters: str) -> str | None:
        parsed = index_expression(index)
        if parsed is None:
            return None
        register, offset = parsed
        for array in self._arrays:
            end = array.first_slot + array.length * array.rows
            if array.bind != bind or not array.first_slot <= offset < end:
                continue
            relative = offset - array.first_slot
            position = f"{register} + {relative}" if relative else register
            if array.rows > 1:
                grouped = f"({position})" if relative else position
                element = f"[{grouped} / {array.rows}][{grouped} % {array.rows}]"
            else:
                element = f"[{position}]"
            selector = ""
            if letters:
                selector = "." + "".join(
                    COMPONENTS[COMPONENTS.index(c) % array.columns] for c in letters
                )
            return f"{array.name}{element}{selector}"
        return None

    def find_texture(self, operand: str) -> ResourceInfo | None:
        """Look up the texture bound to an operand such as ``t0.xyzw``."""
        return self.texture_map.get(split_selector(split_modifiers(operand)[1])[0])

    def find_sampler(self, operand: str) -> ResourceInfo | None:
        """Look up the sampler bound to an operand such as ``s0``."""
        return self.sampler_map.get(split_selector(split_modifiers(operand)[1])[0])

    def find_uav(self, operand: str) -> ResourceInfo | None:
        """Look up the UAV bound to an operand such as ``u1.xyzw``."""
        return self.uav_map.get(split_selector(split_modifiers(operand)[1])[0])

    def get_casted_string(self, expr: str, target: SwizzleInfo) -> str:
        """Cast an expression to the component shape of a destination.

        Args:
            expr: Resolved source expression
            target: Components written by the destination operand

        Returns:
            An expression supplying exactly ``target.count`` components, or
            ``expr`` unchanged if it has no selector to rewrite
        """
        if target.count == 0:
            return expr
        negate, inner, absolute = split_modifiers(expr)

        if CONSTRUCTOR_PATTERN.match(inner) and is_literal(inner) is not None:
            result = select_literal(inner, target)
        elif inner in self.constant_fields:
            info = self.constant_fields[inner]
            if info.element_count == target.count:
                result = inner
            elif info.element_count == 1:
                scalar = VECTOR_SUFFIX_PATTERN.sub("", info.type_name)
                result = f"{scalar}{target.count}({inner})"
            else:
                full = COMPONENTS[: info.element_count]
                result = rewrite_selector(f"{inner}.{full}", target)
        else:
            base, letters = split_selector(inner)
            info = self.constant_fields.get(base) if letters else None
            if info is not None and info.element_count == 1 and target.count > 1:
                scalar = VECTOR_SUFFIX_PATTERN.sub("", info.type_name)
                result = f"{scalar}{target.count}({base})"
            else:
                result = rewrite_selector(inner, target)
        return apply_modifiers(result, negate, absolute)
