"""
Constants and lookup tables for the shader assembly decompiler.

This module contains the type tables, resource-type mappings and system-value
routing rules shared by the reflection resolver, the decoder and the emitter.
"""

import re

# Indentation unit for generated code
INDENT = "    "

# Vector component letters in register order
COMPONENTS = "xyzw"

# Stage tag at the start of the instruction body, e.g. vs_4_0, ps_5_0, cs_4_0_level_9_1
STAGE_TAG_PATTERN = re.compile(r"^(vs|ps|gs|ds|hs|cs)_\d+_\d+")

# Scalar base types that may carry a vector or matrix suffix
SCALAR_TYPES = (
    "bool",
    "int",
    "uint",
    "half",
    "float",
    "double",
    "min16float",
    "min10float",
    "min16int",
    "min12int",
    "min16uint",
)

# Number of scalar elements per built-in type; bare scalars are absent and count 1
TYPE_ELEMENT_COUNTS: dict[str, int] = {
    **{f"{base}{n}": n for base in SCALAR_TYPES for n in range(1, 5)},
    **{
        f"{base}{rows}x{cols}": rows * cols
        for base in SCALAR_TYPES
        for rows in range(1, 5)
        for cols in range(1, 5)
    },
}

MATRIX_TYPE_PATTERN = re.compile(r"^([a-z0-9]+?)([1-4])x([1-4])$")

# Size of one constant-buffer register in bytes
SLOT_SIZE = 16

# Texture dimension tag -> (HLSL type, coordinate component count)
TEXTURE_TYPES: dict[str, tuple[str, int]] = {
    "1d": ("Texture1D", 1),
    "1darray": ("Texture1DArray", 2),
    "2d": ("Texture2D", 2),
    "2darray": ("Texture2DArray", 3),
    "2dms": ("Texture2DMS", 2),
    "2dmsarray": ("Texture2DMSArray", 3),
    "2darrayms": ("Texture2DMSArray", 3),
    "3d": ("Texture3D", 3),
    "cube": ("TextureCube", 3),
    "cubearray": ("TextureCubeArray", 4),
    "buf": ("Buffer", 1),
}

# UAV dimension tag -> (HLSL type, coordinate component count)
UAV_TYPES: dict[str, tuple[str, int]] = {
    "1d": ("RWTexture1D", 1),
    "1darray": ("RWTexture1DArray", 2),
    "2d": ("RWTexture2D", 2),
    "2darray": ("RWTexture2DArray", 3),
    "3d": ("RWTexture3D", 3),
    "buf": ("RWBuffer", 1),
}

# Dimension tag used when a sampler has no texture to inherit from
DEFAULT_SAMPLER_DIMENSION = "2d"

# Format that is the implicit template argument of texture types
DEFAULT_TEXTURE_FORMAT = "float4"

# Input system values that stay inside the input struct
STRUCT_SYSTEM_VALUES = frozenset({"NONE", "POS"})

# Input system value -> (type, parameter name, semantic)
SYSTEM_VALUE_PARAMETERS: dict[str, tuple[str, str, str]] = {
    "VERTID": ("uint", "vertexId", "SV_VertexID"),
    "INSTID": ("uint", "instanceId", "SV_InstanceID"),
}

# Built-in input registers -> (type, parameter name, semantic)
BUILTIN_INPUT_REGISTERS: dict[str, tuple[str, str, str]] = {
    "vThreadID": ("uint3", "dispatchId", "SV_DispatchThreadID"),
    "vThreadGroupID": ("uint3", "groupId", "SV_GroupID"),
    "vThreadIDInGroup": ("uint3", "groupThreadId", "SV_GroupThreadID"),
    "vThreadIDInGroupFlattened": ("uint", "groupIndex", "SV_GroupIndex"),
    "vGSInstanceID": ("uint", "gsInstanceId", "SV_GSInstanceID"),
    "vOutputControlPointID": ("uint", "controlPointId", "SV_OutputControlPointID"),
    "vPrim": ("uint", "primitiveId", "SV_PrimitiveID"),
}

# Geometry shader input primitive -> (HLSL qualifier, vertex count)
GS_INPUT_PRIMITIVES: dict[str, tuple[str, int]] = {
    "point": ("point", 1),
    "line": ("line", 2),
    "triangle": ("triangle", 3),
    "lineadj": ("lineadj", 4),
    "triangleadj": ("triangleadj", 6),
}

# Geometry shader output topology -> stream type
GS_OUTPUT_STREAMS: dict[str, str] = {
    "pointlist": "PointStream",
    "linestrip": "LineStream",
    "trianglestrip": "TriangleStream",
}

# Name of the stream parameter of geometry shaders
GS_STREAM_NAME = "outputStream"

AUTO_GENERATED_HEADER = (
    "// <auto-generated>",
    "//     This code was generated by asm2hlsl.",
    "//     Changes to this file will be lost if the code is regenerated.",
    "// </auto-generated>",
)

# Texture type -> components of the texel offset and gradient arguments
TEXTURE_OFFSET_DIMENSIONS: dict[str, int] = {
    "Texture1D": 1,
    "Texture1DArray": 1,
    "Texture2D": 2,
    "Texture2DArray": 2,
    "Texture2DMS": 2,
    "Texture2DMSArray": 2,
    "Texture3D": 3,
    "TextureCube": 3,
    "TextureCubeArray": 3,
}

# Resource type -> (takes a mip level, resinfo components filled by GetDimensions)
RESOURCE_INFO_LAYOUTS: dict[str, tuple[bool, str]] = {
    "Texture1D": (True, "xw"),
    "Texture1DArray": (True, "xyw"),
    "Texture2D": (True, "xyw"),
    "Texture2DArray": (True, "xyzw"),
    "Texture3D": (True, "xyzw"),
    "TextureCube": (True, "xyw"),
    "TextureCubeArray": (True, "xyzw"),
    "Texture2DMS": (False, "xyw"),
    "Texture2DMSArray": (False, "xyzw"),
    "RWTexture1D": (False, "x"),
    "RWTexture1DArray": (False, "xy"),
    "RWTexture2D": (False, "xy"),
    "RWTexture2DArray": (False, "xyz"),
    "RWTexture3D": (False, "xyz"),
}

# Gather channel selected by the sampler operand's component
GATHER_CHANNELS = {"x": "", "y": "Green", "z": "Blue", "w": "Alpha"}

# Resource dimension keywords of instruction modifiers, e.g. (texture2d)
RESOURCE_MODIFIERS = frozenset(
    {
        "buffer",
        "texture1d",
        "texture1darray",
        "texture2d",
        "texture2darray",
        "texture2dms",
        "texture2dmsarray",
        "texture3d",
        "texturecube",
        "texturecubearray",
        "raw_buffer",
        "structured_buffer",
    }
)
