"""
Pytest configuration and shared fixtures for decompiler tests.

This module contains fixtures that are shared across multiple test modules.
"""

import pytest

from asm2hlsl.decompiler.decoder import Decoder, DecoderContext
from asm2hlsl.decompiler.header import HeaderScanner
from asm2hlsl.decompiler.models import (
    ConstantBuffer,
    DecompilerConfig,
    Resource,
    ResourceKind,
    Structure,
    Variable,
)
from asm2hlsl.decompiler.reflection import Reflection

PIXEL_HEADER = """\
// Buffer Definitions:
//
// cbuffer $Globals
// {
//
//   float4 tint;                       // Offset:    0 Size:    16
//   float threshold;                   // Offset:   16 Size:     4
//
// }
//
//
// Resource Bindings:
//
// Name                                 Type  Format         Dim      HLSL Bind  Count
// ------------------------------ ---------- ------- ----------- -------------- ------
// linearSampler                     sampler      NA          NA             s0      1
// diffuseMap                        texture  float4          2d             t0      1
// $Globals                          cbuffer      NA          NA            cb0      1
//
//
//
// Input signature:
//
// Name                 Index   Mask Register SysValue  Format   Used
// -------------------- ----- ------ -------- -------- ------- ------
// SV_POSITION              0   xyzw        0      POS   float
// TEXCOORD                 0   xy          1     NONE   float   xy
//
//
// Output signature:
//
// Name                 Index   Mask Register SysValue  Format   Used
// -------------------- ----- ------ -------- -------- ------- ------
// SV_Target                0   xyzw        0   TARGET   float   xyzw
//
"""


def _resource(name, kind, format_name, dimension, bind, count=1):
    prefix = {
        ResourceKind.TEXTURE: "t",
        ResourceKind.SAMPLER: "s",
        ResourceKind.UAV: "u",
        ResourceKind.CBUFFER: "cb",
    }[kind]
    return Resource(
        name=name,
        kind=kind,
        format=format_name,
        dimension=dimension,
        bind=bind,
        bind_name=f"{prefix}{bind}",
        count=count,
    )


@pytest.fixture
def pixel_header():
    """Fixture providing the header of a textured pixel shader listing."""
    return PIXEL_HEADER


@pytest.fixture
def pixel_reflection():
    """Fixture providing reflection tables scanned from the pixel header."""
    reflection = Reflection()
    HeaderScanner(reflection).scan(PIXEL_HEADER)
    reflection.resolve()
    return reflection


@pytest.fixture
def resource_reflection():
    """Fixture providing textures, samplers and UAVs of every access style."""
    reflection = Reflection()
    reflection.add_structure(
        Structure(
            name="Particle",
            variables=[
                Variable(type_name="float3", name="position", offset=0),
                Variable(type_name="float", name="life", offset=12),
            ],
        )
    )
    reflection.add_uav_struct_pair("particles", "Particle")
    reflection.add_resource(_resource("linearSampler", ResourceKind.SAMPLER, "NA", "NA", 0))
    reflection.add_resource(_resource("diffuseMap", ResourceKind.TEXTURE, "float4", "2d", 0))
    reflection.add_resource(_resource("indexMap", ResourceKind.TEXTURE, "uint", "2d", 1))
    reflection.add_resource(_resource("particles", ResourceKind.UAV, "struct", "r/w", 0))
    reflection.add_resource(_resource("counters", ResourceKind.UAV, "byte", "r/w", 1))
    reflection.add_resource(_resource("result", ResourceKind.UAV, "float4", "2d", 2))
    reflection.resolve()
    return reflection


@pytest.fixture
def matrix_reflection():
    """Fixture providing a constant buffer with a matrix and an array."""
    reflection = Reflection()
    reflection.add_constant_buffer(
        ConstantBuffer(
            name="Transforms",
            variables=[
                Variable("float4x4", "worldMatrix", 0, 64),
                Variable("float4", "lights[3]", 64, 48),
                Variable("float2", "uvScale", 112, 8),
                Variable("float2", "uvOffset", 120, 8),
            ],
        )
    )
    reflection.add_resource(_resource("Transforms", ResourceKind.CBUFFER, "NA", "NA", 2))
    reflection.resolve()
    return reflection


@pytest.fixture
def decode():
    """Fixture providing a helper that decodes an instruction body.

    The helper prepends a stage tag and returns the decoder context.
    """

    def _decode(
        body: str,
        reflection: Reflection | None = None,
        stage: str = "ps_5_0",
        strict: bool = False,
    ) -> DecoderContext:
        if reflection is None:
            reflection = Reflection()
            reflection.resolve()
        config = DecompilerConfig(strict_nesting=strict)
        return Decoder(reflection, config).decode(f"{stage}\n{body}")

    return _decode
