"""
Resource access instructions.

Texture sampling, buffer loads and stores and atomic operations share the
operand handling of the :class:`~asm2hlsl.decompiler.decoder.Decoder` but
render method calls on the resolved resource instead of plain expressions.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from asm2hlsl.decompiler.constants import (
    COMPONENTS,
    GATHER_CHANNELS,
    TEXTURE_OFFSET_DIMENSIONS,
    TYPE_ELEMENT_COUNTS,
)
from asm2hlsl.decompiler.models import ResourceInfo, SwizzleInfo, Variable
from asm2hlsl.decompiler.opcodes import Instruction, NumericKind, Opcode
from asm2hlsl.decompiler.swizzle import as_integer, split_modifiers, split_selector

if TYPE_CHECKING:
    from asm2hlsl.decompiler.decoder import Decoder


@dataclass
class ResourceOperand:
    """Resource operand of an instruction.

    Attributes:
        name: Access name, e.g. ``diffuseMap`` or ``lights[2]``
        letters: Component selector written on the operand
        info: Resolved binding, None for group-shared memory and unknown registers
        shared_words: Words per element of group-shared memory, 0 for raw arrays
    """

    name: str
    letters: str
    info: ResourceInfo | None = None
    shared_words: int | None = None

    @property
    def base_type(self) -> str:
        if self.info is None:
            return ""
        return self.info.type_name.split("<")[0]

    @property
    def is_shared(self) -> bool:
        return self.shared_words is not None


def read_resource(decoder: "Decoder") -> ResourceOperand:
    """Read a texture, UAV or group-shared memory operand."""
    raw = decoder.read_raw_operand()
    base, letters = split_selector(split_modifiers(raw)[1])
    if base in decoder.context.shared_memory:
        return ResourceOperand(base, letters, shared_words=decoder.context.shared_memory[base])

    reflection = decoder.reflection
    info = reflection.find_uav(raw) or reflection.find_texture(raw)
    if info is None:
        logger.warning(f"Unknown resource '{raw}' at line {decoder.line}")
        return ResourceOperand(base, letters)
    return ResourceOperand(info.expanded_name, letters, info)


def _sampler_name(decoder: "Decoder", raw: str) -> str:
    info = decoder.reflection.find_sampler(raw)
    if info is not None:
        return info.expanded_name
    return split_selector(split_modifiers(raw)[1])[0]


def _shape(count: int) -> SwizzleInfo:
    return SwizzleInfo(COMPONENTS[:count])


def _scalar(decoder: "Decoder", raw: str) -> str:
    return decoder.cast(decoder.resolve(raw), _shape(1))


def _offsets(instruction: Instruction, resource: ResourceOperand) -> str | None:
    count = TEXTURE_OFFSET_DIMENSIONS.get(resource.base_type, 2)
    if not instruction.offsets or not any(instruction.offsets[:count]):
        return None
    values = ", ".join(str(v) for v in instruction.offsets[:count])
    return f"int{count}({values})" if count > 1 else values


def _result(decoder: "Decoder", call: str, letters: str, target: SwizzleInfo) -> str:
    """Apply the resource swizzle to a call and cast it to the destination."""
    expression = f"{call}.{letters}" if letters else call
    expression = decoder.cast(expression, target)
    if expression.endswith(".xyzw"):
        expression = expression[: -len(".xyzw")]
    return expression


def sample(decoder: "Decoder", instruction: Instruction) -> None:
    """Render ``sample*`` as ``Sample``, ``SampleLevel``, ``SampleGrad``, ..."""
    destination = decoder.read_destination()
    coordinate = decoder.resolve(decoder.read_raw_operand())
    texture = read_resource(decoder)
    sampler = _sampler_name(decoder, decoder.read_raw_operand())
    extra = [decoder.read_raw_operand() for _ in range(instruction.info.arity - 4)]

    dimension = texture.info.dimension if texture.info else 2
    method = instruction.info.symbol
    arguments = [sampler, decoder.cast(coordinate, _shape(dimension))]
    if method == "SampleGrad":
        gradient = _shape(TEXTURE_OFFSET_DIMENSIONS.get(texture.base_type, dimension))
        arguments.extend(decoder.cast(decoder.resolve(raw), gradient) for raw in extra)
    else:
        arguments.extend(_scalar(decoder, raw) for raw in extra)
    offset = _offsets(instruction, texture)
    if offset is not None:
        arguments.append(offset)

    call = f"{texture.name}.{method}({', '.join(arguments)})"
    # Comparison sampling returns a scalar
    letters = "" if method.startswith("SampleCmp") else texture.letters
    decoder.assign(destination, _result(decoder, call, letters, destination.shape))


def load(decoder: "Decoder", instruction: Instruction) -> None:
    """Render ``ld`` and ``ld_ms`` as ``Load`` with integer coordinates."""
    destination = decoder.read_destination()
    address = decoder.resolve(decoder.read_raw_operand())
    texture = read_resource(decoder)

    dimension = texture.info.dimension if texture.info else 2
    multisampled = instruction.opcode == Opcode.LOAD_MS
    if not multisampled and texture.base_type not in ("Buffer", "RWBuffer"):
        dimension += 1  # mip level
    arguments = [as_integer(decoder.cast(address, _shape(dimension)), "asint")]
    if multisampled:
        sample_index = _scalar(decoder, decoder.read_raw_operand())
        arguments.append(as_integer(sample_index, "asint"))
    offset = _offsets(instruction, texture)
    if offset is not None:
        arguments.append(offset)

    call = f"{texture.name}.Load({', '.join(arguments)})"
    result = _result(decoder, call, texture.letters, destination.shape)
    if _is_integer_format(texture.info):
        result = f"asfloat({result})"
    decoder.assign(destination, result)


def _is_integer_format(info: ResourceInfo | None) -> bool:
    if info is None or "<" not in info.type_name:
        return False
    element = info.type_name.split("<", 1)[1].rstrip(">")
    return element.startswith(("uint", "int"))


def resource_info(decoder: "Decoder", instruction: Instruction) -> None:
    """Render ``resinfo`` through the ``GetResourceInfo`` helper."""
    destination = decoder.read_destination()
    mip = _scalar(decoder, decoder.read_raw_operand())
    texture = read_resource(decoder)

    if texture.info is not None:
        types = decoder.context.resource_info_types
        if texture.info.type_name not in types:
            types.append(texture.info.type_name)
    call = f"GetResourceInfo({texture.name}, {as_integer(mip)})"
    if instruction.kind == NumericKind.UINT:
        call = f"asfloat(uint4({call}))"
    elif instruction.info.symbol:
        call = f"{instruction.info.symbol}({call})"
    decoder.assign(destination, _result(decoder, call, texture.letters, destination.shape))


def level_of_detail(decoder: "Decoder", instruction: Instruction) -> None:
    """Render ``lod`` as ``CalculateLevelOfDetail``."""
    destination = decoder.read_destination()
    coordinate = decoder.resolve(decoder.read_raw_operand())
    texture = read_resource(decoder)
    sampler = _sampler_name(decoder, decoder.read_raw_operand())

    dimension = TEXTURE_OFFSET_DIMENSIONS.get(texture.base_type, 2)
    coordinate = decoder.cast(coordinate, _shape(dimension))
    call = f"{texture.name}.{instruction.info.symbol}({sampler}, {coordinate})"
    decoder.assign(destination, decoder.cast(call, destination.shape))


def gather(decoder: "Decoder", instruction: Instruction) -> None:
    """Render the ``gather4`` family; the sampler swizzle picks the channel."""
    destination = decoder.read_destination()
    coordinate = decoder.resolve(decoder.read_raw_operand())
    offset_raw = decoder.read_raw_operand() if instruction.info.width else None
    texture = read_resource(decoder)
    sampler_raw = decoder.read_raw_operand()
    sampler = _sampler_name(decoder, sampler_raw)
    method = instruction.info.symbol

    dimension = texture.info.dimension if texture.info else 2
    arguments = [sampler, decoder.cast(coordinate, _shape(dimension))]
    if method == "GatherCmp":
        arguments.append(_scalar(decoder, decoder.read_raw_operand()))
    if offset_raw is not None:
        offset = decoder.cast(decoder.resolve(offset_raw), _shape(2))
        arguments.append(as_integer(offset, "asint"))
    else:
        offset = _offsets(instruction, texture)
        if offset is not None:
            arguments.append(offset)

    _, letters = split_selector(split_modifiers(sampler_raw)[1])
    channel = GATHER_CHANNELS.get(letters[:1], "")
    call = f"{texture.name}.{method}{channel}({', '.join(arguments)})"
    decoder.assign(destination, _result(decoder, call, texture.letters, destination.shape))


# Buffers


def _word_index(address: str, word: int) -> str:
    if address.isdigit():
        return str(int(address) // 4 + word)
    if word:
        return f"({address} >> 2) + {word}"
    return f"{address} >> 2"


def _gather_words(words: list[str]) -> str:
    if len(words) == 1:
        return words[0]
    return f"uint{len(words)}({', '.join(words)})"


def _lane_letters(letters: str, count: int) -> str:
    letters = letters or COMPONENTS
    return "".join(letters[i % len(letters)] for i in range(count))


def load_raw(decoder: "Decoder") -> None:
    """Render ``ld_raw`` as ``LoadN`` on byte-address buffers."""
    destination = decoder.read_destination()
    address = as_integer(_scalar(decoder, decoder.read_raw_operand()))
    resource = read_resource(decoder)
    count = max(destination.shape.count, 1)

    letters = _lane_letters(resource.letters, 4)
    selected = [COMPONENTS.index(letters[i]) for i in destination.shape.index or (0,)]
    if resource.is_shared:
        words = [f"{resource.name}[{_word_index(address, w)}]" for w in selected]
        decoder.assign(destination, f"asfloat({_gather_words(words)})")
        return

    width = max(selected) + 1
    method = "Load" if width == 1 else f"Load{width}"
    call = f"{resource.name}.{method}({address})"
    if width > 1:
        picked = "".join(COMPONENTS[w] for w in selected)
        if picked != COMPONENTS[:width] or count != width:
            call = f"{call}.{picked}"
    decoder.assign(destination, f"asfloat({call})")


def store_raw(decoder: "Decoder") -> None:
    """Render ``store_raw`` as ``StoreN`` on byte-address buffers."""
    resource = read_resource(decoder)
    address = as_integer(_scalar(decoder, decoder.read_raw_operand()))
    shape = SwizzleInfo(resource.letters or "x")
    value = decoder.read_source(_shape(shape.count))

    if resource.is_shared:
        for position, word in enumerate(shape.index):
            lane = decoder.lane(value, position, shape.count) if shape.count > 1 else value
            decoder.emit(f"{resource.name}[{_word_index(address, word)}] = {as_integer(lane)};")
        return

    method = "Store" if shape.count == 1 else f"Store{shape.count}"
    decoder.emit(f"{resource.name}.{method}({address}, {as_integer(value)});")


def _structure_member(
    decoder: "Decoder", resource: ResourceOperand, offset: int
) -> tuple[Variable, int] | None:
    if resource.info is None or resource.info.structure is None:
        return None
    structure = decoder.reflection.structures.get(resource.info.structure)
    if structure is None:
        return None
    for member in structure.variables:
        width = TYPE_ELEMENT_COUNTS.get(member.type_name, 1)
        if member.offset <= offset < member.offset + 4 * width:
            return member, (offset - member.offset) // 4
    return None


def _member_access(
    decoder: "Decoder",
    resource: ResourceOperand,
    index: str,
    offset_raw: str,
    letters: str,
) -> tuple[str, str] | None:
    """Build ``res[index].member.sel`` for lanes ``letters`` at a byte offset.

    Returns:
        Tuple of (access expression, member type), or None if the offset
        does not address a known member
    """
    if not offset_raw.isdigit():
        return None
    found = _structure_member(decoder, resource, int(offset_raw))
    if found is None:
        return None
    member, start = found
    width = TYPE_ELEMENT_COUNTS.get(member.type_name, 1)
    expression = f"{resource.name}[{index}].{member.name}"
    if width > 1:
        selected = "".join(
            COMPONENTS[min(start + COMPONENTS.index(c), width - 1)] for c in letters
        )
        expression = f"{expression}.{selected}"
    return expression, member.type_name


def load_structured(decoder: "Decoder") -> None:
    """Render ``ld_structured`` as a member access on structured buffers."""
    destination = decoder.read_destination()
    index = as_integer(_scalar(decoder, decoder.read_raw_operand()))
    offset_raw = _scalar(decoder, decoder.read_raw_operand())
    resource = read_resource(decoder)
    letters = _lane_letters(resource.letters, 4)

    if resource.is_shared:
        first = int(offset_raw) // 4 if offset_raw.isdigit() else 0
        lanes = destination.shape.index or (0,)
        words = [
            f"{resource.name}[{index}][{first + COMPONENTS.index(letters[i])}]"
            for i in lanes
        ]
        decoder.assign(destination, f"asfloat({_gather_words(words)})")
        return

    access = _member_access(decoder, resource, index, offset_raw, letters)
    if access is None:
        logger.warning(
            f"No member of {resource.name} at offset {offset_raw}, line {decoder.line}"
        )
        decoder.assign(destination, f"asfloat({resource.name}[{index}])")
        return
    expression, type_name = access
    if type_name.startswith(("uint", "int")):
        expression = f"asfloat({expression})"
    decoder.assign(destination, decoder.cast(expression, destination.shape))


def store_structured(decoder: "Decoder") -> None:
    """Render ``store_structured`` as an assignment to a member."""
    resource = read_resource(decoder)
    index = as_integer(_scalar(decoder, decoder.read_raw_operand()))
    offset_raw = _scalar(decoder, decoder.read_raw_operand())
    shape = SwizzleInfo(resource.letters or "x")
    value = decoder.read_source(_shape(shape.count))

    if resource.is_shared:
        first = int(offset_raw) // 4 if offset_raw.isdigit() else 0
        for position, word in enumerate(shape.index):
            lane = decoder.lane(value, position, shape.count) if shape.count > 1 else value
            decoder.emit(f"{resource.name}[{index}][{first + word}] = {as_integer(lane)};")
        return

    access = _member_access(decoder, resource, index, offset_raw, shape.pattern)
    if access is None:
        logger.warning(
            f"No member of {resource.name} at offset {offset_raw}, line {decoder.line}"
        )
        decoder.emit(f"{resource.name}[{index}] = {as_integer(value)};")
        return
    expression, type_name = access
    if type_name.startswith("uint"):
        value = as_integer(value)
    elif type_name.startswith("int"):
        value = as_integer(value, "asint")
    decoder.emit(f"{expression} = {value};")


def load_typed(decoder: "Decoder") -> None:
    """Render ``ld_uav_typed`` as an indexed read of a typed UAV."""
    destination = decoder.read_destination()
    address = decoder.resolve(decoder.read_raw_operand())
    resource = read_resource(decoder)
    dimension = resource.info.dimension if resource.info else 1

    coordinate = as_integer(decoder.cast(address, _shape(dimension)))
    access = f"{resource.name}[{coordinate}]"
    letters = resource.letters
    format_count = _format_count(resource.info)
    if format_count == 1:
        letters = ""
    result = _result(decoder, access, letters, destination.shape)
    if _is_integer_format(resource.info):
        result = f"asfloat({result})"
    decoder.assign(destination, result)


def store_typed(decoder: "Decoder") -> None:
    """Render ``store_uav_typed`` as an indexed write of a typed UAV."""
    resource = read_resource(decoder)
    address = decoder.resolve(decoder.read_raw_operand())
    dimension = resource.info.dimension if resource.info else 1
    coordinate = as_integer(decoder.cast(address, _shape(dimension)))

    value = decoder.read_source(_shape(_format_count(resource.info)))
    if _is_integer_format(resource.info):
        value = as_integer(value)
    decoder.emit(f"{resource.name}[{coordinate}] = {value};")


def _format_count(info: ResourceInfo | None) -> int:
    if info is None or "<" not in info.type_name:
        return 4
    element = info.type_name.split("<", 1)[1].rstrip(">")
    return TYPE_ELEMENT_COUNTS.get(element, 1)


# Atomics


def _atomic_target(
    decoder: "Decoder", resource: ResourceOperand, address: str
) -> tuple[str, str]:
    """Locate the memory an atomic operates on.

    Returns:
        Tuple of (call prefix, destination argument); byte-address buffers use
        method syntax with the byte address as first argument
    """
    if resource.is_shared:
        if resource.shared_words:
            index = decoder.lane(address, 0, 2)
            offset = decoder.lane(address, 1, 2)
            word = (
                str(int(offset) // 4) if offset.isdigit() else f"{as_integer(offset)} >> 2"
            )
            return "", f"{resource.name}[{as_integer(index)}][{word}]"
        scalar = as_integer(decoder.cast(address, _shape(1)))
        return "", f"{resource.name}[{_word_index(scalar, 0)}]"

    info = resource.info
    if info is not None and info.is_raw:
        return f"{resource.name}.", as_integer(decoder.cast(address, _shape(1)))
    if info is not None and info.is_structured:
        index = as_integer(decoder.lane(address, 0, 2))
        offset = decoder.lane(address, 1, 2)
        access = _member_access(decoder, resource, index, offset, "x")
        if access is not None:
            return "", access[0]
        return "", f"{resource.name}[{index}]"

    dimension = info.dimension if info is not None else 1
    coordinate = as_integer(decoder.cast(address, _shape(dimension)))
    return "", f"{resource.name}[{coordinate}]"


def _atomic_value(decoder: "Decoder", instruction: Instruction) -> str:
    cast = "asint" if instruction.kind == NumericKind.INT else "asuint"
    return as_integer(_scalar(decoder, decoder.read_raw_operand()), cast)


def atomic(decoder: "Decoder", instruction: Instruction) -> None:
    """Render ``atomic_*`` as an ``Interlocked*`` call without a result."""
    resource = read_resource(decoder)
    address = decoder.resolve(decoder.read_raw_operand())
    values = [_atomic_value(decoder, instruction) for _ in range(instruction.info.arity - 2)]

    prefix, target = _atomic_target(decoder, resource, address)
    arguments = ", ".join([target, *values])
    decoder.emit(f"{prefix}{instruction.info.symbol}({arguments});")


def immediate_atomic(decoder: "Decoder", instruction: Instruction) -> None:
    """Render ``imm_atomic_*``, returning the previous value into a register."""
    destination = decoder.read_destination()
    resource = read_resource(decoder)
    address = decoder.resolve(decoder.read_raw_operand())
    values = [_atomic_value(decoder, instruction) for _ in range(instruction.info.arity - 3)]

    prefix, target = _atomic_target(decoder, resource, address)
    arguments = ", ".join([target, *values, "original"])
    decoder.emit("{")
    decoder.context.depth += 1
    decoder.emit("uint original;")
    decoder.emit(f"{prefix}{instruction.info.symbol}({arguments});")
    decoder.assign(destination, "asfloat(original)")
    decoder.context.depth -= 1
    decoder.emit("}")


def atomic_counter(decoder: "Decoder", instruction: Instruction) -> None:
    """Render ``imm_atomic_alloc``/``imm_atomic_consume`` as counter methods."""
    destination = decoder.read_destination()
    resource = read_resource(decoder)
    decoder.assign(
        destination, f"asfloat({resource.name}.{instruction.info.symbol}())"
    )
