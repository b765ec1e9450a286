"""Tests for the decompiler header module."""

import pytest

from asm2hlsl.decompiler.errors import MalformedDeclarationError
from asm2hlsl.decompiler.header import (
    HeaderScanner,
    Section,
    classify_section,
    semantic_to_name,
)
from asm2hlsl.decompiler.models import Layout, ResourceKind
from asm2hlsl.decompiler.reflection import Reflection

STRUCTURED_HEADER = """\
// Buffer Definitions:
//
// Resource bind info for particles
// {
//
//   struct Particle
//   {
//
//       float3 position;               // Offset:    0
//       float life;                    // Offset:   12
//
//   } $Element;                        // Offset:    0 Size:    16
//
// }
//
//
// Resource Bindings:
//
// Name                                 Type  Format         Dim      HLSL Bind  Count
// ------------------------------ ---------- ------- ----------- -------------- ------
// particles                             UAV  struct         r/w             u0      1
//
cs_5_0
"""


def scan(text: str) -> Reflection:
    reflection = Reflection()
    HeaderScanner(reflection).scan(text)
    return reflection


@pytest.mark.parametrize(
    "text,section",
    [
        ("Buffer Definitions:", Section.DEFINITIONS),
        ("Resource Bindings:", Section.BINDINGS),
        ("Input signature:", Section.INPUT_SIGNATURE),
        ("Output signature:", Section.OUTPUT_SIGNATURE),
        ("Patch Constant signature:", Section.UNKNOWN),
        ("  Buffer Definitions:  ", Section.DEFINITIONS),
    ],
)
def test_classify_section(text, section):
    assert classify_section(text) == section


def test_classify_non_title():
    assert classify_section("Generated by Microsoft (R) HLSL Shader Compiler") is None
    assert classify_section("float4 tint; // Offset: 0 Size: 16") is None


@pytest.mark.parametrize(
    "semantic,name",
    [
        ("SV_POSITION", "Position"),
        ("SV_Target", "Target"),
        ("TEXCOORD", "Texcoord"),
        ("NORMAL", "Normal"),
    ],
)
def test_semantic_to_name(semantic, name):
    assert semantic_to_name(semantic) == name


class TestScanner:
    """Test feeding a listing header into the reflection tables."""

    def test_constant_buffer(self, pixel_header):
        reflection = scan(pixel_header)
        assert len(reflection.constant_buffers) == 1
        cbuffer = reflection.constant_buffers[0]
        assert cbuffer.name == "Globals"
        assert [(v.type_name, v.name, v.offset, v.size) for v in cbuffer.variables] == [
            ("float4", "tint", 0, 16),
            ("float", "threshold", 16, 4),
        ]

    def test_resources(self, pixel_header):
        reflection = scan(pixel_header)
        assert [(r.name, r.kind, r.bind) for r in reflection.resources] == [
            ("linearSampler", ResourceKind.SAMPLER, 0),
            ("diffuseMap", ResourceKind.TEXTURE, 0),
            ("Globals", ResourceKind.CBUFFER, 0),
        ]
        assert reflection.resources[1].format == "float4"
        assert reflection.resources[1].dimension == "2d"

    def test_signatures(self, pixel_header):
        reflection = scan(pixel_header)
        inputs = reflection.input_signatures
        assert [(s.semantic, s.mask, s.register, s.system_value) for s in inputs] == [
            ("SV_POSITION", "xyzw", 0, "POS"),
            ("TEXCOORD", "xy", 1, "NONE"),
        ]
        assert inputs[1].var_name == "Texcoord"
        assert inputs[1].type_name == "float2"
        outputs = reflection.output_signatures
        assert [(s.semantic, s.var_name) for s in outputs] == [("SV_Target", "Target")]

    def test_named_output_register(self):
        reflection = scan(
            "// Output signature:\n"
            "//\n"
            "// SV_Depth                 0    N/A   oDepth    DEPTH   float    YES\n"
        )
        signature = reflection.output_signatures[0]
        assert signature.register is None
        assert signature.register_name == "oDepth"
        assert signature.type_name == "float"

    def test_no_signature_line(self):
        reflection = scan("// Input signature:\n//\n// no Input\n")
        assert reflection.input_signatures == []

    def test_section_ends_at_code(self):
        reflection = scan(
            "// Resource Bindings:\n"
            "// diffuseMap texture float4 2d t0 1\n"
            "ps_4_0\n"
            "// stray comment with six fields in it\n"
        )
        assert len(reflection.resources) == 1

    def test_structured_buffer_pairing(self):
        reflection = scan(STRUCTURED_HEADER)
        assert "Particle" in reflection.structures
        members = reflection.structures["Particle"].variables
        assert [(m.type_name, m.name, m.offset) for m in members] == [
            ("float3", "position", 0),
            ("float", "life", 12),
        ]
        assert reflection.uav_structs == {"particles": "Particle"}
        assert reflection.resources[0].kind == ResourceKind.UAV

    def test_struct_typed_field(self):
        reflection = scan(
            "// Buffer Definitions:\n"
            "//\n"
            "// cbuffer Lighting\n"
            "// {\n"
            "//\n"
            "//   struct Light\n"
            "//   {\n"
            "//\n"
            "//       float3 color;                  // Offset:    0\n"
            "//       float range;                   // Offset:   12\n"
            "//\n"
            "//   } sun;                             // Offset:    0 Size:    16\n"
            "//   float ambient;                     // Offset:   16 Size:     4\n"
            "//\n"
            "// }\n"
        )
        cbuffer = reflection.constant_buffers[0]
        assert [(v.type_name, v.name) for v in cbuffer.variables] == [
            ("Light", "sun"),
            ("float", "ambient"),
        ]

    def test_layout_keyword(self):
        reflection = scan(
            "// Buffer Definitions:\n"
            "//\n"
            "// cbuffer Camera\n"
            "// {\n"
            "//\n"
            "//   row_major float4x4 view;           // Offset:    0 Size:    64\n"
            "//   float4x4 projection;               // Offset:   64 Size:    64\n"
            "//\n"
            "// }\n"
        )
        view, projection = reflection.constant_buffers[0].variables
        assert view.layout == Layout.ROW_MAJOR
        assert projection.layout == Layout.DEFAULT

    def test_malformed_binding(self):
        with pytest.raises(MalformedDeclarationError) as excinfo:
            scan("// Resource Bindings:\n//\n// diffuseMap texture float4\n")
        assert excinfo.value.line == 3

    def test_malformed_variable(self):
        text = "// Buffer Definitions:\n// cbuffer A\n// {\n//   float4 tint;\n// }\n"
        with pytest.raises(MalformedDeclarationError) as excinfo:
            scan(text)
        assert excinfo.value.line == 4
        assert "fields" in str(excinfo.value)

    def test_invalid_offset(self):
        text = (
            "// Buffer Definitions:\n"
            "// cbuffer A\n"
            "// {\n"
            "//   float4 tint;  // Offset: abc Size: 16\n"
            "// }\n"
        )
        with pytest.raises(MalformedDeclarationError, match="offset"):
            scan(text)

    def test_invalid_bind_slot(self):
        with pytest.raises(MalformedDeclarationError, match="bind slot"):
            scan("// Resource Bindings:\n// diffuseMap texture float4 2d tx 1\n")
