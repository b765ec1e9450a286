"""
Opcode classification for shader assembly mnemonics.

Each mnemonic is classified once into an :class:`Instruction` carrying its
opcode family, operand count and numeric kind. The decoder then handles the
families by pattern matching instead of comparing mnemonic strings.
"""

from dataclasses import dataclass
from enum import Enum, auto


class Opcode(Enum):
    """Opcode family; all mnemonics of a family share one handler."""

    # Arithmetic
    BINARY = auto()
    CALL1 = auto()
    CALL2 = auto()
    MAD = auto()
    INTEGER_MAD = auto()
    DOT = auto()
    MUL_WIDE = auto()
    UDIV = auto()
    SINCOS = auto()
    NEGATE = auto()

    # Moves and selection
    MOV = auto()
    MOVC = auto()
    SWAPC = auto()
    COMPARE = auto()

    # Bit manipulation and conversion
    NOT = auto()
    LOGIC = auto()
    SHIFT = auto()
    BIT_CALL = auto()
    BIT_EXTRACT = auto()
    BIT_INSERT = auto()
    TO_HALF = auto()
    FROM_HALF = auto()
    FROM_FLOAT = auto()
    TO_FLOAT = auto()

    # Control flow
    IF = auto()
    ELSE = auto()
    ENDIF = auto()
    LOOP = auto()
    ENDLOOP = auto()
    SWITCH = auto()
    CASE = auto()
    DEFAULT = auto()
    ENDSWITCH = auto()
    BREAK = auto()
    BREAKC = auto()
    CONTINUE = auto()
    CONTINUEC = auto()
    RET = auto()
    RETC = auto()
    DISCARD = auto()
    EMIT = auto()
    CUT = auto()
    SYNC = auto()
    NOP = auto()

    # Declarations
    DCL_TEMPS = auto()
    DCL_INDEXABLE_TEMP = auto()
    DCL_IMMEDIATE_CONSTANT_BUFFER = auto()
    DCL_THREAD_GROUP = auto()
    DCL_TGSM_RAW = auto()
    DCL_TGSM_STRUCTURED = auto()
    DCL_INPUT = auto()
    DCL_MAX_OUTPUT_VERTEX_COUNT = auto()
    DCL_INPUT_PRIMITIVE = auto()
    DCL_OUTPUT_TOPOLOGY = auto()
    DCL_OTHER = auto()

    # Resource access
    SAMPLE = auto()
    LOAD = auto()
    LOAD_MS = auto()
    RESINFO = auto()
    LOD = auto()
    GATHER = auto()
    LOAD_RAW = auto()
    LOAD_STRUCTURED = auto()
    LOAD_UAV_TYPED = auto()
    STORE_RAW = auto()
    STORE_STRUCTURED = auto()
    STORE_UAV_TYPED = auto()
    ATOMIC = auto()
    IMM_ATOMIC = auto()
    ATOMIC_COUNTER = auto()


class NumericKind(Enum):
    """Numeric view an instruction takes of its untyped operands."""

    FLOAT = auto()
    INT = auto()
    UINT = auto()


@dataclass(frozen=True)
class OpcodeInfo:
    """Static description of one mnemonic.

    Attributes:
        opcode: Opcode family
        arity: Number of operands, destinations included
        kind: Numeric view of the operands
        symbol: Operator, intrinsic or method name used by the handler
        width: Operand width for dot products, or flag value for other families
    """

    opcode: Opcode
    arity: int = 0
    kind: NumericKind = NumericKind.FLOAT
    symbol: str = ""
    width: int = 0


@dataclass
class Instruction:
    """Classified mnemonic with the modifiers written after it.

    Attributes:
        mnemonic: Mnemonic as written in the listing
        info: Opcode description
        saturate: True if the mnemonic carries ``_sat``
        offsets: Immediate texel offsets from ``_aoffimmi(u, v, w)``
        resource_type: Resource dimension from ``(texture2d)`` style modifiers
        stride: Structure stride from ``(structured_buffer, stride=N)``
    """

    mnemonic: str
    info: OpcodeInfo
    saturate: bool = False
    offsets: tuple[int, ...] = ()
    resource_type: str = ""
    stride: int = 0

    @property
    def opcode(self) -> Opcode:
        return self.info.opcode

    @property
    def kind(self) -> NumericKind:
        return self.info.kind


F, I, U = NumericKind.FLOAT, NumericKind.INT, NumericKind.UINT

# Shader model 4 instruction set
CORE_OPCODES: dict[str, OpcodeInfo] = {
    "add": OpcodeInfo(Opcode.BINARY, 3, F, "+"),
    "iadd": OpcodeInfo(Opcode.BINARY, 3, I, "+"),
    "mul": OpcodeInfo(Opcode.BINARY, 3, F, "*"),
    "div": OpcodeInfo(Opcode.BINARY, 3, F, "/"),
    "mad": OpcodeInfo(Opcode.MAD, 4, F, "mad"),
    "imad": OpcodeInfo(Opcode.INTEGER_MAD, 4, I),
    "umad": OpcodeInfo(Opcode.INTEGER_MAD, 4, U),
    "min": OpcodeInfo(Opcode.CALL2, 3, F, "min"),
    "max": OpcodeInfo(Opcode.CALL2, 3, F, "max"),
    "imin": OpcodeInfo(Opcode.CALL2, 3, I, "min"),
    "imax": OpcodeInfo(Opcode.CALL2, 3, I, "max"),
    "umin": OpcodeInfo(Opcode.CALL2, 3, U, "min"),
    "umax": OpcodeInfo(Opcode.CALL2, 3, U, "max"),
    "imul": OpcodeInfo(Opcode.MUL_WIDE, 4, I, "*"),
    "umul": OpcodeInfo(Opcode.MUL_WIDE, 4, U, "*"),
    "udiv": OpcodeInfo(Opcode.UDIV, 4, U),
    "dp2": OpcodeInfo(Opcode.DOT, 3, F, "dot", 2),
    "dp3": OpcodeInfo(Opcode.DOT, 3, F, "dot", 3),
    "dp4": OpcodeInfo(Opcode.DOT, 3, F, "dot", 4),
    "exp": OpcodeInfo(Opcode.CALL1, 2, F, "exp2"),
    "log": OpcodeInfo(Opcode.CALL1, 2, F, "log2"),
    "frc": OpcodeInfo(Opcode.CALL1, 2, F, "frac"),
    "sqrt": OpcodeInfo(Opcode.CALL1, 2, F, "sqrt"),
    "rsq": OpcodeInfo(Opcode.CALL1, 2, F, "rsqrt"),
    "round_ne": OpcodeInfo(Opcode.CALL1, 2, F, "round"),
    "round_ni": OpcodeInfo(Opcode.CALL1, 2, F, "floor"),
    "round_pi": OpcodeInfo(Opcode.CALL1, 2, F, "ceil"),
    "round_z": OpcodeInfo(Opcode.CALL1, 2, F, "trunc"),
    "deriv_rtx": OpcodeInfo(Opcode.CALL1, 2, F, "ddx"),
    "deriv_rty": OpcodeInfo(Opcode.CALL1, 2, F, "ddy"),
    "ineg": OpcodeInfo(Opcode.NEGATE, 2, I),
    "sincos": OpcodeInfo(Opcode.SINCOS, 3, F),
    "mov": OpcodeInfo(Opcode.MOV, 2, F),
    "movc": OpcodeInfo(Opcode.MOVC, 4, F),
    "eq": OpcodeInfo(Opcode.COMPARE, 3, F, "=="),
    "ne": OpcodeInfo(Opcode.COMPARE, 3, F, "!="),
    "lt": OpcodeInfo(Opcode.COMPARE, 3, F, "<"),
    "ge": OpcodeInfo(Opcode.COMPARE, 3, F, ">="),
    "ieq": OpcodeInfo(Opcode.COMPARE, 3, I, "=="),
    "ine": OpcodeInfo(Opcode.COMPARE, 3, I, "!="),
    "ilt": OpcodeInfo(Opcode.COMPARE, 3, I, "<"),
    "ige": OpcodeInfo(Opcode.COMPARE, 3, I, ">="),
    "ult": OpcodeInfo(Opcode.COMPARE, 3, U, "<"),
    "uge": OpcodeInfo(Opcode.COMPARE, 3, U, ">="),
    "not": OpcodeInfo(Opcode.NOT, 2, U, "~"),
    "and": OpcodeInfo(Opcode.LOGIC, 3, U, "&"),
    "or": OpcodeInfo(Opcode.LOGIC, 3, U, "|"),
    "xor": OpcodeInfo(Opcode.LOGIC, 3, U, "^"),
    "ishl": OpcodeInfo(Opcode.SHIFT, 3, I, "<<"),
    "ishr": OpcodeInfo(Opcode.SHIFT, 3, I, ">>"),
    "ushr": OpcodeInfo(Opcode.SHIFT, 3, U, ">>"),
    "ftoi": OpcodeInfo(Opcode.FROM_FLOAT, 2, I, "asint"),
    "ftou": OpcodeInfo(Opcode.FROM_FLOAT, 2, U, "asuint"),
    "itof": OpcodeInfo(Opcode.TO_FLOAT, 2, I, "asfloat"),
    "utof": OpcodeInfo(Opcode.TO_FLOAT, 2, U, "asfloat"),
    "if_nz": OpcodeInfo(Opcode.IF, 1, F, "!="),
    "if_z": OpcodeInfo(Opcode.IF, 1, F, "=="),
    "else": OpcodeInfo(Opcode.ELSE),
    "endif": OpcodeInfo(Opcode.ENDIF),
    "loop": OpcodeInfo(Opcode.LOOP),
    "endloop": OpcodeInfo(Opcode.ENDLOOP),
    "switch": OpcodeInfo(Opcode.SWITCH, 1, I),
    "case": OpcodeInfo(Opcode.CASE, 1, I),
    "default": OpcodeInfo(Opcode.DEFAULT),
    "endswitch": OpcodeInfo(Opcode.ENDSWITCH),
    "break": OpcodeInfo(Opcode.BREAK),
    "breakc_nz": OpcodeInfo(Opcode.BREAKC, 1, F, "!="),
    "breakc_z": OpcodeInfo(Opcode.BREAKC, 1, F, "=="),
    "continue": OpcodeInfo(Opcode.CONTINUE),
    "continuec_nz": OpcodeInfo(Opcode.CONTINUEC, 1, F, "!="),
    "continuec_z": OpcodeInfo(Opcode.CONTINUEC, 1, F, "=="),
    "ret": OpcodeInfo(Opcode.RET),
    "retc_nz": OpcodeInfo(Opcode.RETC, 1, F, "!="),
    "retc_z": OpcodeInfo(Opcode.RETC, 1, F, "=="),
    "discard_nz": OpcodeInfo(Opcode.DISCARD, 1, F, "!="),
    "discard_z": OpcodeInfo(Opcode.DISCARD, 1, F, "=="),
    "emit": OpcodeInfo(Opcode.EMIT),
    "cut": OpcodeInfo(Opcode.CUT),
    "nop": OpcodeInfo(Opcode.NOP),
    "label": OpcodeInfo(Opcode.NOP, 1),
    "dcl_temps": OpcodeInfo(Opcode.DCL_TEMPS, 1),
    "dcl_indexableTemp": OpcodeInfo(Opcode.DCL_INDEXABLE_TEMP, 2),
    "dcl_immediateConstantBuffer": OpcodeInfo(Opcode.DCL_IMMEDIATE_CONSTANT_BUFFER),
    "dcl_input": OpcodeInfo(Opcode.DCL_INPUT, 1),
    "dcl_maxOutputVertexCount": OpcodeInfo(Opcode.DCL_MAX_OUTPUT_VERTEX_COUNT, 1),
    "dcl_inputPrimitive": OpcodeInfo(Opcode.DCL_INPUT_PRIMITIVE, 1),
    "dcl_outputTopology": OpcodeInfo(Opcode.DCL_OUTPUT_TOPOLOGY, 1),
    "dcl_maxout": OpcodeInfo(Opcode.DCL_MAX_OUTPUT_VERTEX_COUNT, 1),
    "dcl_inputprimitive": OpcodeInfo(Opcode.DCL_INPUT_PRIMITIVE, 1),
    "dcl_outputtopology": OpcodeInfo(Opcode.DCL_OUTPUT_TOPOLOGY, 1),
    "sample": OpcodeInfo(Opcode.SAMPLE, 4, F, "Sample"),
    "sample_b": OpcodeInfo(Opcode.SAMPLE, 5, F, "SampleBias"),
    "sample_c": OpcodeInfo(Opcode.SAMPLE, 5, F, "SampleCmp"),
    "sample_c_lz": OpcodeInfo(Opcode.SAMPLE, 5, F, "SampleCmpLevelZero"),
    "sample_l": OpcodeInfo(Opcode.SAMPLE, 5, F, "SampleLevel"),
    "sample_d": OpcodeInfo(Opcode.SAMPLE, 6, F, "SampleGrad"),
    "ld": OpcodeInfo(Opcode.LOAD, 3, I, "Load"),
    "ld_ms": OpcodeInfo(Opcode.LOAD_MS, 4, I, "Load"),
    "resinfo": OpcodeInfo(Opcode.RESINFO, 3, F),
    "resinfo_uint": OpcodeInfo(Opcode.RESINFO, 3, U),
    "resinfo_rcpFloat": OpcodeInfo(Opcode.RESINFO, 3, F, "rcp"),
}

# Shader model 5 additions, looked up before the core table
EXTENDED_OPCODES: dict[str, OpcodeInfo] = {
    "rcp": OpcodeInfo(Opcode.CALL1, 2, F, "rcp"),
    "deriv_rtx_coarse": OpcodeInfo(Opcode.CALL1, 2, F, "ddx_coarse"),
    "deriv_rtx_fine": OpcodeInfo(Opcode.CALL1, 2, F, "ddx_fine"),
    "deriv_rty_coarse": OpcodeInfo(Opcode.CALL1, 2, F, "ddy_coarse"),
    "deriv_rty_fine": OpcodeInfo(Opcode.CALL1, 2, F, "ddy_fine"),
    "countbits": OpcodeInfo(Opcode.BIT_CALL, 2, U, "countbits"),
    "firstbit_hi": OpcodeInfo(Opcode.BIT_CALL, 2, U, "firstbithigh"),
    "firstbit_shi": OpcodeInfo(Opcode.BIT_CALL, 2, I, "firstbithigh"),
    "firstbit_lo": OpcodeInfo(Opcode.BIT_CALL, 2, U, "firstbitlow"),
    "bfrev": OpcodeInfo(Opcode.BIT_CALL, 2, U, "reversebits"),
    "ubfe": OpcodeInfo(Opcode.BIT_EXTRACT, 4, U),
    "ibfe": OpcodeInfo(Opcode.BIT_EXTRACT, 4, I),
    "bfi": OpcodeInfo(Opcode.BIT_INSERT, 5, U),
    "f32tof16": OpcodeInfo(Opcode.TO_HALF, 2, F, "f32tof16"),
    "f16tof32": OpcodeInfo(Opcode.FROM_HALF, 2, U, "f16tof32"),
    "swapc": OpcodeInfo(Opcode.SWAPC, 5, F),
    "emit_stream": OpcodeInfo(Opcode.EMIT, 1),
    "cut_stream": OpcodeInfo(Opcode.CUT, 1),
    "dcl_thread_group": OpcodeInfo(Opcode.DCL_THREAD_GROUP, 3),
    "dcl_tgsm_raw": OpcodeInfo(Opcode.DCL_TGSM_RAW, 2),
    "dcl_tgsm_structured": OpcodeInfo(Opcode.DCL_TGSM_STRUCTURED, 3),
    "lod": OpcodeInfo(Opcode.LOD, 4, F, "CalculateLevelOfDetail"),
    "gather4": OpcodeInfo(Opcode.GATHER, 4, F, "Gather"),
    "gather4_c": OpcodeInfo(Opcode.GATHER, 5, F, "GatherCmp"),
    "gather4_po": OpcodeInfo(Opcode.GATHER, 5, F, "Gather", 1),
    "gather4_po_c": OpcodeInfo(Opcode.GATHER, 6, F, "GatherCmp", 1),
    "ld_raw": OpcodeInfo(Opcode.LOAD_RAW, 3, U),
    "ld_structured": OpcodeInfo(Opcode.LOAD_STRUCTURED, 4, U),
    "ld_uav_typed": OpcodeInfo(Opcode.LOAD_UAV_TYPED, 3, I),
    "store_raw": OpcodeInfo(Opcode.STORE_RAW, 3, U),
    "store_structured": OpcodeInfo(Opcode.STORE_STRUCTURED, 4, U),
    "store_uav_typed": OpcodeInfo(Opcode.STORE_UAV_TYPED, 3, I),
    "atomic_and": OpcodeInfo(Opcode.ATOMIC, 3, U, "InterlockedAnd"),
    "atomic_or": OpcodeInfo(Opcode.ATOMIC, 3, U, "InterlockedOr"),
    "atomic_xor": OpcodeInfo(Opcode.ATOMIC, 3, U, "InterlockedXor"),
    "atomic_iadd": OpcodeInfo(Opcode.ATOMIC, 3, I, "InterlockedAdd"),
    "atomic_imax": OpcodeInfo(Opcode.ATOMIC, 3, I, "InterlockedMax"),
    "atomic_imin": OpcodeInfo(Opcode.ATOMIC, 3, I, "InterlockedMin"),
    "atomic_umax": OpcodeInfo(Opcode.ATOMIC, 3, U, "InterlockedMax"),
    "atomic_umin": OpcodeInfo(Opcode.ATOMIC, 3, U, "InterlockedMin"),
    "atomic_cmp_store": OpcodeInfo(Opcode.ATOMIC, 4, U, "InterlockedCompareStore"),
    "imm_atomic_and": OpcodeInfo(Opcode.IMM_ATOMIC, 4, U, "InterlockedAnd"),
    "imm_atomic_or": OpcodeInfo(Opcode.IMM_ATOMIC, 4, U, "InterlockedOr"),
    "imm_atomic_xor": OpcodeInfo(Opcode.IMM_ATOMIC, 4, U, "InterlockedXor"),
    "imm_atomic_exch": OpcodeInfo(Opcode.IMM_ATOMIC, 4, U, "InterlockedExchange"),
    "imm_atomic_iadd": OpcodeInfo(Opcode.IMM_ATOMIC, 4, I, "InterlockedAdd"),
    "imm_atomic_imax": OpcodeInfo(Opcode.IMM_ATOMIC, 4, I, "InterlockedMax"),
    "imm_atomic_imin": OpcodeInfo(Opcode.IMM_ATOMIC, 4, I, "InterlockedMin"),
    "imm_atomic_umax": OpcodeInfo(Opcode.IMM_ATOMIC, 4, U, "InterlockedMax"),
    "imm_atomic_umin": OpcodeInfo(Opcode.IMM_ATOMIC, 4, U, "InterlockedMin"),
    "imm_atomic_cmp_exch": OpcodeInfo(
        Opcode.IMM_ATOMIC, 5, U, "InterlockedCompareExchange"
    ),
    "imm_atomic_alloc": OpcodeInfo(Opcode.ATOMIC_COUNTER, 2, U, "IncrementCounter"),
    "imm_atomic_consume": OpcodeInfo(Opcode.ATOMIC_COUNTER, 2, U, "DecrementCounter"),
}

# Families whose mnemonics differ only by a variable suffix
PREFIX_OPCODES: dict[str, OpcodeInfo] = {
    "sync": OpcodeInfo(Opcode.SYNC),
    "dcl_": OpcodeInfo(Opcode.DCL_OTHER),
}

# Mnemonic segments that only announce modifiers already parsed from the parentheses
MODIFIER_SEGMENTS = frozenset({"indexable", "aoffimmi"})


def normalize_mnemonic(mnemonic: str) -> tuple[str, bool]:
    """Strip the saturate and modifier suffixes off a mnemonic.

    Args:
        mnemonic: Mnemonic as written, e.g. ``sample_l_aoffimmi_indexable``

    Returns:
        Tuple of (base mnemonic, saturate flag)
    """
    saturate = mnemonic.endswith("_sat")
    name = mnemonic[: -len("_sat")] if saturate else mnemonic
    name = "_".join(s for s in name.split("_") if s not in MODIFIER_SEGMENTS)
    return name, saturate


def lookup(name: str) -> OpcodeInfo | None:
    """Find the description of a normalized mnemonic."""
    info = EXTENDED_OPCODES.get(name) or CORE_OPCODES.get(name)
    if info is not None:
        return info
    for prefix in sorted(PREFIX_OPCODES, key=len, reverse=True):
        if name.startswith(prefix):
            return PREFIX_OPCODES[prefix]
    return None


def classify(mnemonic: str) -> Instruction | None:
    """Classify a mnemonic token.

    Args:
        mnemonic: Mnemonic as written in the listing

    Returns:
        The classified instruction, or None if the mnemonic is not modeled
    """
    name, saturate = normalize_mnemonic(mnemonic)
    info = lookup(name)
    if info is None:
        return None
    return Instruction(mnemonic=mnemonic, info=info, saturate=saturate)
