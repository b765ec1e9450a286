"""Tests for the decompiler emitter module."""

import pytest

from asm2hlsl.decompiler.decoder import DecoderContext
from asm2hlsl.decompiler.emitter import Emitter
from asm2hlsl.decompiler.models import DecompilerConfig, ShaderStage, Signature
from asm2hlsl.decompiler.reflection import Reflection


def signature(semantic, mask, register, system_value, format_name, var_name):
    return Signature(
        semantic=semantic,
        semantic_index=0,
        mask=mask,
        register=register,
        register_name=f"v{register}",
        system_value=system_value,
        format=format_name,
        var_name=var_name,
    )


@pytest.fixture
def vertex_reflection():
    """Fixture providing a vertex shader with a position and a vertex id input."""
    reflection = Reflection()
    reflection.add_input_signature(signature("POSITION", "xyzw", 0, "NONE", "float", "Position"))
    reflection.add_input_signature(signature("SV_VertexID", "x", 1, "VERTID", "uint", "VertexID"))
    reflection.add_output_signature(
        signature("SV_POSITION", "xyzw", 0, "POS", "float", "Position")
    )
    reflection.resolve()
    return reflection


def render(reflection, context, **config) -> str:
    return Emitter(reflection, context, DecompilerConfig(**config)).render()


class TestEntryPoint:
    """Test the rendered entry-point function."""

    def test_vertex_shader(self, vertex_reflection):
        context = DecoderContext(
            stage=ShaderStage.VERTEX, statements=["output.Position = input.Position;"]
        )
        assert render(vertex_reflection, context) == (
            "// <auto-generated>\n"
            "//     This code was generated by asm2hlsl.\n"
            "//     Changes to this file will be lost if the code is regenerated.\n"
            "// </auto-generated>\n"
            "\n"
            "struct VSInput\n"
            "{\n"
            "    float4 Position : POSITION;\n"
            "};\n"
            "\n"
            "struct VSOutput\n"
            "{\n"
            "    float4 Position : SV_POSITION;\n"
            "};\n"
            "\n"
            "VSOutput main(VSInput input, uint vertexId : SV_VertexID)\n"
            "{\n"
            "    VSOutput output = (VSOutput)0;\n"
            "    output.Position = input.Position;\n"
            "    return output;\n"
            "}\n"
        )

    def test_entry_point_name(self, vertex_reflection):
        context = DecoderContext(stage=ShaderStage.VERTEX)
        code = render(vertex_reflection, context, entry_point="VSMain")
        assert "VSOutput VSMain(VSInput input, uint vertexId : SV_VertexID)" in code

    def test_blank_statements_stay_empty(self, vertex_reflection):
        context = DecoderContext(stage=ShaderStage.VERTEX, statements=["float4 r0;", ""])
        lines = render(vertex_reflection, context).splitlines()
        index = lines.index("    float4 r0;")
        assert lines[index + 1] == ""

    def test_compute_thread_group(self):
        context = DecoderContext(stage=ShaderStage.COMPUTE, thread_group=(8, 4, 1))
        lines = render(Reflection(), context).splitlines()
        assert "[numthreads(8, 4, 1)]" in lines
        assert "void main()" in lines

    def test_compute_default_thread_group(self):
        context = DecoderContext(stage=ShaderStage.COMPUTE)
        lines = render(Reflection(), context).splitlines()
        assert "[numthreads(1, 1, 1)]" in lines

    def test_geometry_stream(self):
        reflection = Reflection()
        reflection.add_input_signature(
            signature("SV_POSITION", "xyzw", 0, "POS", "float", "Position")
        )
        reflection.add_output_signature(
            signature("SV_POSITION", "xyzw", 0, "POS", "float", "Position")
        )
        reflection.resolve()
        context = DecoderContext(
            stage=ShaderStage.GEOMETRY,
            max_vertex_count=3,
            input_primitive="triangle",
            output_topology="trianglestrip",
            statements=["outputStream.Append(output);"],
        )
        lines = render(reflection, context).splitlines()
        assert lines[-6:] == [
            "[maxvertexcount(3)]",
            "void main(triangle GSInput input[3], inout TriangleStream<GSOutput> outputStream)",
            "{",
            "    GSOutput output = (GSOutput)0;",
            "    outputStream.Append(output);",
            "}",
        ]
        assert "    return output;" not in lines

    def test_point_stream(self):
        reflection = Reflection()
        reflection.add_output_signature(
            signature("SV_POSITION", "xyzw", 0, "POS", "float", "Position")
        )
        reflection.resolve()
        context = DecoderContext(stage=ShaderStage.GEOMETRY, output_topology="pointlist")
        code = render(reflection, context)
        assert "void main(inout PointStream<GSOutput> outputStream)" in code


class TestDeclarations:
    """Test constant buffers, structures and resource declarations."""

    def test_resource_order(self, resource_reflection):
        context = DecoderContext(stage=ShaderStage.COMPUTE, thread_group=(1, 1, 1))
        lines = render(resource_reflection, context).splitlines()
        start = lines.index("Texture2D diffuseMap : register(t0);")
        assert lines[start : start + 6] == [
            "Texture2D diffuseMap : register(t0);",
            "Texture2D<uint> indexMap : register(t1);",
            "RWStructuredBuffer<Particle> particles : register(u0);",
            "RWByteAddressBuffer counters : register(u1);",
            "RWTexture2D<float4> result : register(u2);",
            "SamplerState linearSampler : register(s0);",
        ]

    def test_structure(self, resource_reflection):
        context = DecoderContext(stage=ShaderStage.COMPUTE)
        code = render(resource_reflection, context)
        assert "struct Particle\n{\n    float3 position;\n    float life;\n};\n" in code

    def test_constant_buffer_padding(self, matrix_reflection):
        context = DecoderContext(stage=ShaderStage.VERTEX)
        code = render(matrix_reflection, context)
        assert (
            "cbuffer Transforms : register(b2)\n"
            "{\n"
            "    row_major float4x4  worldMatrix;\n"
            "    float4              lights[3];\n"
            "    float2              uvScale;\n"
            "    float2              uvOffset;\n"
            "};\n"
        ) in code

    def test_global_declarations(self):
        context = DecoderContext(
            stage=ShaderStage.COMPUTE, global_declarations=["groupshared uint g0[64];"]
        )
        assert "groupshared uint g0[64];" in render(Reflection(), context).splitlines()

    def test_resource_info_helper(self, resource_reflection):
        context = DecoderContext(
            stage=ShaderStage.PIXEL, resource_info_types=["Texture2D"]
        )
        code = render(resource_reflection, context)
        assert (
            "float4 GetResourceInfo(Texture2D tex, uint mip)\n"
            "{\n"
            "    float4 info = 0;\n"
            "    tex.GetDimensions(mip, info.x, info.y, info.w);\n"
            "    return info;\n"
            "}\n"
        ) in code

    def test_buffer_resource_info_helper(self):
        context = DecoderContext(stage=ShaderStage.PIXEL, resource_info_types=["Buffer<float4>"])
        code = render(Reflection(), context)
        assert "float4 GetResourceInfo(Buffer<float4> tex, uint mip)" in code
        assert "    tex.GetDimensions(width);" in code

    def test_output_ends_with_newline(self):
        code = render(Reflection(), DecoderContext(stage=ShaderStage.PIXEL))
        assert code.endswith("}\n")
        assert not code.endswith("\n\n")
