"""
Instruction decoder for shader assembly listings.

The decoder walks the token stream of the instruction region, classifies each
mnemonic and dispatches it to a handler that appends HLSL statements to the
:class:`DecoderContext`. Operands are resolved through the reflection tables
and cast to the component shape of the instruction's destination.

Structured control flow is rebuilt from the flat branch markers with a stack
of open blocks; every statement is indented by the current block depth.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from asm2hlsl.decompiler import resource_ops
from asm2hlsl.decompiler.constants import (
    BUILTIN_INPUT_REGISTERS,
    COMPONENTS,
    GS_STREAM_NAME,
    RESOURCE_MODIFIERS,
)
from asm2hlsl.decompiler.errors import (
    DecodeError,
    MissingStageError,
    UnbalancedBlockError,
)
from asm2hlsl.decompiler.lexer import Lexer, Token
from asm2hlsl.decompiler.models import (
    DecompilerConfig,
    Parameter,
    ShaderStage,
    SwizzleInfo,
)
from asm2hlsl.decompiler.opcodes import (
    Instruction,
    NumericKind,
    Opcode,
    classify,
)
from asm2hlsl.decompiler.reflection import Reflection
from asm2hlsl.decompiler.swizzle import (
    apply_modifiers,
    as_integer,
    is_literal,
    normalize_indexed,
    split_modifiers,
    split_selector,
    to_swizzle_info,
)


@dataclass
class DecoderContext:
    """Mutable state of one decode run.

    Attributes:
        stage: Shader stage from the stage tag
        depth: Current block nesting depth
        blocks: Kinds of the open blocks, innermost last
        statements: Indented HLSL statements in output order
        thread_group: Thread-group size from ``dcl_thread_group``
        resource_info_types: Resource types queried by ``resinfo``
        declared_temps: Temporary registers already declared
        global_declarations: Declarations placed at file scope
        shared_memory: Group-shared arrays; words per element, 0 for raw arrays
        parameters: Entry-point parameters declared by ``dcl_input``
        max_vertex_count: Geometry shader output vertex limit
        input_primitive: Geometry shader input primitive
        output_topology: Geometry shader output topology
        emits_vertices: True once an ``emit`` instruction was decoded
    """

    stage: ShaderStage | None = None
    depth: int = 0
    blocks: list[str] = field(default_factory=list)
    statements: list[str] = field(default_factory=list)
    thread_group: tuple[int, int, int] | None = None
    resource_info_types: list[str] = field(default_factory=list)
    declared_temps: set[int] = field(default_factory=set)
    global_declarations: list[str] = field(default_factory=list)
    shared_memory: dict[str, int] = field(default_factory=dict)
    parameters: list[Parameter] = field(default_factory=list)
    max_vertex_count: int | None = None
    input_primitive: str | None = None
    output_topology: str | None = None
    emits_vertices: bool = False

    @property
    def uses_resource_info(self) -> bool:
        return bool(self.resource_info_types)

    @property
    def has_output_stream(self) -> bool:
        return self.stage == ShaderStage.GEOMETRY and self.output_topology is not None


@dataclass
class Destination:
    """Destination operand of an instruction.

    Attributes:
        name: Resolved expression, without a redundant full ``.xyzw`` selector
        shape: Components written, taken from the raw operand
        full: Resolved expression with an explicit selector for every written lane
    """

    name: str
    shape: SwizzleInfo
    full: str

    @property
    def is_null(self) -> bool:
        return not self.name


class Decoder:
    """Translates the instruction region of a listing into HLSL statements."""

    def __init__(self, reflection: Reflection, config: DecompilerConfig | None = None):
        self.reflection = reflection
        self.config = config or DecompilerConfig()
        self.context = DecoderContext()
        self.lexer = Lexer("")
        self.instruction: Instruction | None = None
        self.line: int | None = None
        self._skipped_line: int | None = None

    def decode(self, text: str) -> DecoderContext:
        """Decode the instruction region of a listing.

        Args:
            text: Complete listing; header comments are ignored by the lexer

        Returns:
            The filled decoder context

        Raises:
            MissingStageError: If no stage tag precedes the instructions
            DecodeError: If an instruction lacks operands
            UnbalancedBlockError: If blocks do not pair up and strict nesting is on
        """
        self.lexer = Lexer(text)
        context = self.context

        while not self.lexer.at_end():
            token = self.lexer.next()
            stage = ShaderStage.from_tag(token.text)
            if stage is not None:
                context.stage = stage
                logger.debug(f"Found stage tag '{token.text}' at line {token.line}")
                break
        if context.stage is None:
            raise MissingStageError("No shader stage tag found in listing")

        while not self.lexer.at_end():
            self._decode_instruction()

        if context.depth != 0 or context.blocks:
            self._unbalanced(
                f"Control flow ends at depth {context.depth} "
                f"with {len(context.blocks)} open blocks"
            )
        logger.debug(f"Decoded {len(context.statements)} statements")
        return context

    def _decode_instruction(self) -> None:
        token = self.lexer.next()
        self.line = token.line
        instruction = classify(token.text)
        if instruction is None:
            if self._skipped_line != token.line:
                logger.warning(
                    f"Skipping unsupported instruction '{token.text}' at line {token.line}"
                )
                self._skipped_line = token.line
            else:
                logger.debug(f"Skipping token '{token.text}' at line {token.line}")
            return

        instruction = self._read_modifiers(instruction)
        self.instruction = instruction
        self._dispatch(instruction)

    def _on_line(self, token: Token | None) -> bool:
        return token is not None and token.line == self.line

    def _read_group(self) -> list[str]:
        self.lexer.next()  # "("
        values = []
        while True:
            token = self.lexer.peek()
            if not self._on_line(token):
                raise DecodeError("Unterminated parenthesis", self.line)
            self.lexer.next()
            if token.text == ")":
                return values
            values.append(token.text)

    def _read_modifiers(self, instruction: Instruction) -> Instruction:
        """Parse ``(...)`` groups and split-off suffixes following a mnemonic."""
        while True:
            token = self.lexer.peek()
            if not self._on_line(token):
                return instruction
            if token.text == "(":
                values = self._read_group()
                self._apply_group(instruction, values)
            elif token.text.startswith("_"):
                # resinfo_indexable(texture2d)(float,float,float,float)_uint
                self.lexer.next()
                suffixed = classify(instruction.mnemonic + token.text)
                if suffixed is not None:
                    suffixed.offsets = instruction.offsets
                    suffixed.resource_type = instruction.resource_type
                    suffixed.stride = instruction.stride
                    suffixed.saturate = suffixed.saturate or instruction.saturate
                    instruction = suffixed
            else:
                return instruction

    @staticmethod
    def _apply_group(instruction: Instruction, values: list[str]) -> None:
        if not values:
            return
        if all(v.lstrip("-").isdigit() for v in values):
            instruction.offsets = tuple(int(v) for v in values)
            return
        if values[0].lower() in RESOURCE_MODIFIERS:
            instruction.resource_type = values[0].lower()
        for value in values:
            if value.startswith("stride="):
                instruction.stride = int(value[len("stride=") :])

    # Operand reading

    def next_operand_token(self) -> Token:
        """Consume the next operand token of the current instruction line.

        Raises:
            DecodeError: If the instruction line has no more operands
        """
        token = self.lexer.peek()
        if not self._on_line(token):
            mnemonic = self.instruction.mnemonic if self.instruction else "instruction"
            raise DecodeError(f"Missing operand for '{mnemonic}'", self.line)
        return self.lexer.next()

    def read_raw_operand(self) -> str:
        """Read one operand as written, joining literal and index groups."""
        text = self.next_operand_token().text
        if text in ("l", "d") and self.lexer.compare("("):
            values = self._read_group()
            if not values:
                raise DecodeError("Empty literal", self.line)
            if len(values) == 1:
                return values[0]
            return f"float{len(values)}({', '.join(values)})"
        while text.count("[") > text.count("]"):
            text = f"{text} {self.next_operand_token().text}"
        return text

    def resolve(self, raw: str) -> str:
        """Resolve a raw operand into an HLSL expression."""
        name = self.reflection.query_name(raw)
        if name is not None:
            return name
        negate, inner, absolute = split_modifiers(raw)
        return apply_modifiers(normalize_indexed(inner), negate, absolute)

    def cast(self, expr: str, target: SwizzleInfo) -> str:
        return self.reflection.get_casted_string(expr, target)

    def read_destination(self) -> Destination:
        raw = self.read_raw_operand()
        if raw == "null":
            return Destination("", SwizzleInfo(), "")
        shape = to_swizzle_info(raw)
        name = self.resolve(raw)
        full = name
        if name.endswith(".xyzw"):
            name = name[: -len(".xyzw")]
        if shape.count and not split_selector(full)[1]:
            full = f"{full}.{COMPONENTS[: shape.count]}"
        return Destination(name, shape, full)

    def read_source(self, target: SwizzleInfo) -> str:
        return self.cast(self.resolve(self.read_raw_operand()), target)

    def read_sources(self, count: int, target: SwizzleInfo) -> list[str]:
        return [self.read_source(target) for _ in range(count)]

    def lane(self, expr: str, position: int, count: int) -> str:
        """Select lane ``position`` of an expression cast to ``count`` components."""
        negate, inner, absolute = split_modifiers(expr)
        if is_literal(inner) is None and not split_selector(inner)[1]:
            inner = f"{inner}.{COMPONENTS[:count]}"
        selected = self.cast(inner, SwizzleInfo(COMPONENTS[position]))
        return apply_modifiers(selected, negate, absolute)

    # Statements and blocks

    def emit(self, text: str) -> None:
        """Append a statement indented to the current depth."""
        if not text:
            self.context.statements.append("")
            return
        indent = self.config.indent * max(self.context.depth, 0)
        self.context.statements.append(f"{indent}{text}")

    def assign(self, destination: Destination, rhs: str) -> None:
        if destination.is_null:
            return
        if self.instruction is not None and self.instruction.saturate:
            rhs = f"saturate({rhs})"
        self.emit(f"{destination.name} = {rhs};")

    def assign_lanes(
        self, destination: Destination, build: Callable[[int | None], str]
    ) -> None:
        """Assign per lane when the destination has several components.

        Args:
            destination: Destination operand
            build: Callable mapping a lane position (or None for the whole
                value) to the right-hand side
        """
        if destination.shape.count <= 1:
            self.assign(destination, build(None))
            return
        for position in range(destination.shape.count):
            target = self.lane(destination.full, position, destination.shape.count)
            self.assign(Destination(target, SwizzleInfo("x"), target), build(position))

    def open_block(self, kind: str) -> None:
        self.context.blocks.append(kind)
        self.context.depth += 1

    def close_block(self, expected: str) -> None:
        context = self.context
        if not context.blocks or context.blocks[-1] != expected:
            mnemonic = self.instruction.mnemonic if self.instruction else expected
            self._unbalanced(f"'{mnemonic}' does not close an open {expected} block")
            if not context.blocks:
                context.depth -= 1
                return
        context.blocks.pop()
        context.depth -= 1

    def _top_block(self) -> str | None:
        return self.context.blocks[-1] if self.context.blocks else None

    def _unbalanced(self, message: str) -> None:
        if self.config.strict_nesting:
            raise UnbalancedBlockError(message, self.line)
        location = f" at line {self.line}" if self.line is not None else ""
        logger.warning(f"{message}{location}")

    def return_statement(self) -> str:
        context = self.context
        if (
            context.stage == ShaderStage.COMPUTE
            or context.has_output_stream
            or not self.reflection.output_fields
        ):
            return "return;"
        return "return output;"

    # Dispatch

    def _dispatch(self, instruction: Instruction) -> None:
        match instruction.opcode:
            case Opcode.BINARY:
                self._binary(instruction)
            case Opcode.CALL1:
                self._call1(instruction)
            case Opcode.CALL2:
                self._call2(instruction)
            case Opcode.MAD:
                self._mad()
            case Opcode.INTEGER_MAD:
                self._integer_mad()
            case Opcode.DOT:
                self._dot(instruction)
            case Opcode.MUL_WIDE:
                self._mul_wide()
            case Opcode.UDIV:
                self._udiv()
            case Opcode.SINCOS:
                self._sincos()
            case Opcode.NEGATE:
                self._negate()
            case Opcode.MOV:
                self._mov()
            case Opcode.MOVC:
                self._movc()
            case Opcode.SWAPC:
                self._swapc()
            case Opcode.COMPARE:
                self._compare(instruction)
            case Opcode.NOT:
                self._not()
            case Opcode.LOGIC:
                self._logic(instruction)
            case Opcode.SHIFT:
                self._shift(instruction)
            case Opcode.BIT_CALL:
                self._bit_call(instruction)
            case Opcode.BIT_EXTRACT:
                self._bit_extract(instruction)
            case Opcode.BIT_INSERT:
                self._bit_insert()
            case Opcode.TO_HALF:
                self._to_half()
            case Opcode.FROM_HALF:
                self._from_half()
            case Opcode.FROM_FLOAT:
                self._from_float(instruction)
            case Opcode.TO_FLOAT:
                self._to_float()
            case Opcode.IF:
                self._if(instruction)
            case Opcode.ELSE:
                self._else()
            case Opcode.ENDIF:
                self.close_block("if")
                self.emit("}")
            case Opcode.LOOP:
                self.emit("while (true)")
                self.emit("{")
                self.open_block("loop")
            case Opcode.ENDLOOP:
                self.close_block("loop")
                self.emit("}")
            case Opcode.SWITCH:
                self._switch()
            case Opcode.CASE:
                self._case(f"case {self.read_raw_operand()}:")
            case Opcode.DEFAULT:
                self._case("default:")
            case Opcode.ENDSWITCH:
                self._endswitch()
            case Opcode.BREAK:
                self.emit("break;")
                self._leave_case()
            case Opcode.BREAKC:
                self.emit(f"if ({self._condition(instruction)}) break;")
            case Opcode.CONTINUE:
                self.emit("continue;")
            case Opcode.CONTINUEC:
                self.emit(f"if ({self._condition(instruction)}) continue;")
            case Opcode.RET:
                self._ret()
            case Opcode.RETC:
                self.emit(f"if ({self._condition(instruction)}) {self.return_statement()}")
            case Opcode.DISCARD:
                self.emit(f"if ({self._condition(instruction)}) discard;")
            case Opcode.EMIT:
                self._skip_operands(instruction.info.arity)
                self.context.emits_vertices = True
                self.emit(f"{GS_STREAM_NAME}.Append(output);")
            case Opcode.CUT:
                self._skip_operands(instruction.info.arity)
                self.emit(f"{GS_STREAM_NAME}.RestartStrip();")
            case Opcode.SYNC:
                self._sync(instruction)
            case Opcode.NOP:
                self._skip_operands(instruction.info.arity)
            case Opcode.DCL_TEMPS:
                self._dcl_temps()
            case Opcode.DCL_INDEXABLE_TEMP:
                self._dcl_indexable_temp()
            case Opcode.DCL_IMMEDIATE_CONSTANT_BUFFER:
                self._dcl_immediate_constant_buffer()
            case Opcode.DCL_THREAD_GROUP:
                x, y, z = (self._read_int() for _ in range(3))
                self.context.thread_group = (x, y, z)
            case Opcode.DCL_TGSM_RAW:
                self._dcl_tgsm_raw()
            case Opcode.DCL_TGSM_STRUCTURED:
                self._dcl_tgsm_structured()
            case Opcode.DCL_INPUT:
                self._dcl_input()
            case Opcode.DCL_MAX_OUTPUT_VERTEX_COUNT:
                self.context.max_vertex_count = self._read_int()
            case Opcode.DCL_INPUT_PRIMITIVE:
                self.context.input_primitive = self.read_raw_operand()
            case Opcode.DCL_OUTPUT_TOPOLOGY:
                self.context.output_topology = self.read_raw_operand()
            case Opcode.DCL_OTHER:
                self.lexer.skip_line()
            case Opcode.SAMPLE:
                resource_ops.sample(self, instruction)
            case Opcode.LOAD | Opcode.LOAD_MS:
                resource_ops.load(self, instruction)
            case Opcode.RESINFO:
                resource_ops.resource_info(self, instruction)
            case Opcode.LOD:
                resource_ops.level_of_detail(self, instruction)
            case Opcode.GATHER:
                resource_ops.gather(self, instruction)
            case Opcode.LOAD_RAW:
                resource_ops.load_raw(self)
            case Opcode.LOAD_STRUCTURED:
                resource_ops.load_structured(self)
            case Opcode.LOAD_UAV_TYPED:
                resource_ops.load_typed(self)
            case Opcode.STORE_RAW:
                resource_ops.store_raw(self)
            case Opcode.STORE_STRUCTURED:
                resource_ops.store_structured(self)
            case Opcode.STORE_UAV_TYPED:
                resource_ops.store_typed(self)
            case Opcode.ATOMIC:
                resource_ops.atomic(self, instruction)
            case Opcode.IMM_ATOMIC:
                resource_ops.immediate_atomic(self, instruction)
            case Opcode.ATOMIC_COUNTER:
                resource_ops.atomic_counter(self, instruction)

    def _skip_operands(self, count: int) -> None:
        for _ in range(count):
            self.read_raw_operand()

    def _read_int(self) -> int:
        raw = self.read_raw_operand()
        try:
            return int(raw)
        except ValueError as e:
            raise DecodeError(f"Expected integer operand, got '{raw}'", self.line) from e

    # Arithmetic

    def _binary(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a, b = self.read_sources(2, destination.shape)
        symbol = instruction.info.symbol
        if symbol == "+" and b.startswith("-"):
            self.assign(destination, f"{a} - {b[1:]}")
        else:
            self.assign(destination, f"{a} {symbol} {b}")

    def _call1(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        self.assign(destination, f"{instruction.info.symbol}({a})")

    def _call2(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a, b = self.read_sources(2, destination.shape)
        self.assign(destination, f"{instruction.info.symbol}({a}, {b})")

    def _mad(self) -> None:
        destination = self.read_destination()
        a, b, c = self.read_sources(3, destination.shape)
        self.assign(destination, f"mad({a}, {b}, {c})")

    def _integer_mad(self) -> None:
        destination = self.read_destination()
        a, b, c = self.read_sources(3, destination.shape)
        self.assign(destination, f"{a} * {b} + {c}")

    def _dot(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        shape = SwizzleInfo(COMPONENTS[: instruction.info.width])
        a, b = self.read_sources(2, shape)
        self.assign(destination, f"dot({a}, {b})")

    def _mul_wide(self) -> None:
        high = self.read_destination()
        low = self.read_destination()
        shape = low.shape if not low.is_null else high.shape
        a, b = self.read_sources(2, shape)
        if not high.is_null:
            logger.warning(
                f"High half of a wide multiply is not supported at line {self.line}"
            )
        self.assign(low, f"{a} * {b}")

    def _udiv(self) -> None:
        quotient = self.read_destination()
        remainder = self.read_destination()
        shape = quotient.shape if not quotient.is_null else remainder.shape
        a, b = self.read_sources(2, shape)
        self.assign(quotient, f"(uint){a} / (uint){b}")
        self.assign(remainder, f"(uint){a} % (uint){b}")

    def _sincos(self) -> None:
        sine = self.read_destination()
        cosine = self.read_destination()
        source = self.resolve(self.read_raw_operand())
        self.assign(sine, f"sin({self.cast(source, sine.shape)})")
        self.assign(cosine, f"cos({self.cast(source, cosine.shape)})")

    def _negate(self) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        self.assign(destination, f"-({a})" if a.startswith("-") else f"-{a}")

    # Moves and selection

    def _mov(self) -> None:
        destination = self.read_destination()
        self.assign(destination, self.read_source(destination.shape))

    def _movc(self) -> None:
        destination = self.read_destination()
        condition, a, b = self.read_sources(3, destination.shape)
        count = destination.shape.count

        def build(position: int | None) -> str:
            if position is None:
                return f"({condition} != 0) ? {a} : {b}"
            c, x, y = (self.lane(e, position, count) for e in (condition, a, b))
            return f"({c} != 0) ? {x} : {y}"

        self.assign_lanes(destination, build)

    def _swapc(self) -> None:
        first = self.read_destination()
        second = self.read_destination()
        raws = [self.resolve(self.read_raw_operand()) for _ in range(3)]
        c0, a0, b0 = (self.cast(r, first.shape) for r in raws)
        c1, a1, b1 = (self.cast(r, second.shape) for r in raws)
        self.assign(first, f"({c0} != 0) ? {b0} : {a0}")
        self.assign(second, f"({c1} != 0) ? {a1} : {b1}")

    def _compare(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a, b = self.read_sources(2, destination.shape)
        symbol = instruction.info.symbol
        if instruction.kind == NumericKind.FLOAT:
            one, zero = "1.0", "0.0"
        else:
            one, zero = "1", "0"
        count = destination.shape.count

        def build(position: int | None) -> str:
            if position is None:
                return f"({a} {symbol} {b}) ? {one} : {zero}"
            x, y = self.lane(a, position, count), self.lane(b, position, count)
            return f"({x} {symbol} {y}) ? {one} : {zero}"

        self.assign_lanes(destination, build)

    # Bit manipulation and conversion

    def _not(self) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        self.assign(destination, f"asfloat(~{as_integer(a)})")

    def _logic(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a, b = self.read_sources(2, destination.shape)
        symbol = instruction.info.symbol
        self.assign(destination, f"asfloat({as_integer(a)} {symbol} {as_integer(b)})")

    def _shift(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a, b = self.read_sources(2, destination.shape)
        cast = "asint" if instruction.kind == NumericKind.INT else "asuint"
        symbol = instruction.info.symbol
        self.assign(destination, f"asfloat({as_integer(a, cast)} {symbol} {as_integer(b)})")

    def _bit_call(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        cast = "asint" if instruction.kind == NumericKind.INT else "asuint"
        self.assign(destination, f"asfloat({instruction.info.symbol}({as_integer(a, cast)}))")

    def _bit_extract(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        width, offset, source = self.read_sources(3, destination.shape)
        width, offset = as_integer(width), as_integer(offset)
        if instruction.kind == NumericKind.INT:
            value = as_integer(source, "asint")
            expression = f"({value} << (32 - {width} - {offset})) >> (32 - {width})"
        else:
            expression = f"({as_integer(source)} >> {offset}) & ((1u << {width}) - 1)"
        self.assign(destination, f"asfloat({expression})")

    def _bit_insert(self) -> None:
        destination = self.read_destination()
        width, offset, insert, base = (
            as_integer(s) for s in self.read_sources(4, destination.shape)
        )
        mask = f"(((1u << {width}) - 1) << {offset})"
        self.assign(
            destination,
            f"asfloat((({insert} << {offset}) & {mask}) | ({base} & ~{mask}))",
        )

    def _to_half(self) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        self.assign(destination, f"asfloat(f32tof16({a}))")

    def _from_half(self) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        self.assign(destination, f"f16tof32({as_integer(a)})")

    def _from_float(self, instruction: Instruction) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        literal = is_literal(a)
        if literal is not None and not literal.has_point:
            self.assign(destination, a)
        else:
            self.assign(destination, f"{instruction.info.symbol}({a})")

    def _to_float(self) -> None:
        destination = self.read_destination()
        a = self.read_source(destination.shape)
        literal = is_literal(a)
        if literal is not None and literal.has_point:
            self.assign(destination, a)
        else:
            self.assign(destination, f"asfloat({a})")

    # Control flow

    def _condition(self, instruction: Instruction) -> str:
        value = self.resolve(self.read_raw_operand())
        return f"{value} {instruction.info.symbol} 0"

    def _if(self, instruction: Instruction) -> None:
        self.emit(f"if ({self._condition(instruction)})")
        self.emit("{")
        self.open_block("if")

    def _else(self) -> None:
        if self._top_block() != "if":
            self._unbalanced("'else' without an open if block")
            return
        self.context.depth -= 1
        self.emit("}")
        self.emit("else")
        self.emit("{")
        self.context.depth += 1

    def _switch(self) -> None:
        value = self.resolve(self.read_raw_operand())
        self.emit(f"switch ({as_integer(value, 'asint')})")
        self.emit("{")
        self.open_block("switch")

    def _case(self, label: str) -> None:
        # A label directly after another case falls through
        self._leave_case()
        self.emit(label)
        self.open_block("case")

    def _leave_case(self) -> None:
        if self._top_block() == "case":
            self.close_block("case")

    def _endswitch(self) -> None:
        self._leave_case()
        self.close_block("switch")
        self.emit("}")

    def _ret(self) -> None:
        if self.context.depth <= 0:
            return
        self.emit(self.return_statement())
        self._leave_case()

    def _sync(self, instruction: Instruction) -> None:
        flags = set(instruction.mnemonic.split("_")[1:])
        device = "uglobal" in flags
        group = "g" in flags or "ugroup" in flags
        if device and group:
            barrier = "AllMemoryBarrier"
        elif device:
            barrier = "DeviceMemoryBarrier"
        else:
            barrier = "GroupMemoryBarrier"
        if "t" in flags:
            barrier += "WithGroupSync"
        self.emit(f"{barrier}();")

    # Declarations

    def _dcl_temps(self) -> None:
        count = self._read_int()
        declared = False
        for register in range(count):
            if register in self.context.declared_temps:
                continue
            self.context.declared_temps.add(register)
            self.emit(f"float4 r{register};")
            declared = True
        if declared:
            self.emit("")

    def _dcl_indexable_temp(self) -> None:
        name = self.read_raw_operand()
        components = self._read_int()
        type_name = "float" if components == 1 else f"float{components}"
        self.emit(f"{type_name} {name};")

    def _dcl_immediate_constant_buffer(self) -> None:
        if not self.lexer.compare("{"):
            raise DecodeError("Expected '{' after dcl_immediateConstantBuffer", self.line)
        self.lexer.next()
        rows: list[list[str]] = []
        while True:
            token = self.lexer.next()
            if token.text == "}":
                break
            if token.text != "{":
                raise DecodeError(
                    f"Unexpected '{token.text}' in immediate constant buffer", token.line
                )
            row = []
            while not self.lexer.compare("}"):
                row.append(self.lexer.next().text)
            self.lexer.next()
            rows.append(row)

        elements = [
            f"{self.config.indent}float4({', '.join(_icb_value(v) for v in row)})"
            for row in rows
        ]
        body = ",\n".join(elements)
        self.context.global_declarations.append(
            f"static const float4 icb[{len(rows)}] =\n{{\n{body}\n}};"
        )

    def _dcl_tgsm_raw(self) -> None:
        name = self.read_raw_operand()
        size = self._read_int()
        self.context.shared_memory[name] = 0
        self.context.global_declarations.append(f"groupshared uint {name}[{size // 4}];")

    def _dcl_tgsm_structured(self) -> None:
        name = self.read_raw_operand()
        stride = self._read_int()
        count = self._read_int()
        words = stride // 4
        self.context.shared_memory[name] = words
        self.context.global_declarations.append(
            f"groupshared uint {name}[{count}][{words}];"
        )

    def _dcl_input(self) -> None:
        base, _ = split_selector(self.read_raw_operand())
        builtin = BUILTIN_INPUT_REGISTERS.get(base)
        if builtin is None:
            return
        type_name, name, semantic = builtin
        if any(p.name == name for p in self.context.parameters):
            return
        self.context.parameters.append(Parameter(type_name, name, semantic))


def _icb_value(value: str) -> str:
    if "." in value or value in ("0", "-0"):
        return value
    return f"asfloat({value})"
