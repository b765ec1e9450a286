"""Tests for the decompiler resource_ops module."""

import pytest


@pytest.fixture
def decode_ps(decode, resource_reflection):
    """Fixture decoding a pixel shader body against the resource tables."""

    def _decode(body: str) -> list[str]:
        return decode(body, reflection=resource_reflection).statements

    return _decode


@pytest.fixture
def decode_cs(decode, resource_reflection):
    """Fixture decoding a compute shader body against the resource tables."""

    def _decode(body: str):
        return decode(body, reflection=resource_reflection, stage="cs_5_0")

    return _decode


class TestSampling:
    """Test texture sampling instructions."""

    def test_sample(self, decode_ps):
        assert decode_ps(
            "sample_indexable(texture2d)(float,float,float,float) r0.xyzw, v1.xyxx, t0.xyzw, s0"
        ) == ["r0 = diffuseMap.Sample(linearSampler, v1.xy);"]

    def test_sample_swizzle(self, decode_ps):
        assert decode_ps("sample r0.xy, v1.xyxx, t0.zwxx, s0") == [
            "r0.xy = diffuseMap.Sample(linearSampler, v1.xy).zw;"
        ]

    def test_sample_level_with_offset(self, decode_ps):
        assert decode_ps(
            "sample_l_aoffimmi_indexable(1,0,0)(texture2d)(float,float,float,float) "
            "r0.xyzw, v1.xyxx, t0.xyzw, s0, l(0.000000)"
        ) == ["r0 = diffuseMap.SampleLevel(linearSampler, v1.xy, 0.000000, int2(1, 0));"]

    def test_sample_grad(self, decode_ps):
        assert decode_ps("sample_d r0.xyzw, v1.xyxx, t0.xyzw, s0, r1.xyxx, r2.xyxx") == [
            "r0 = diffuseMap.SampleGrad(linearSampler, v1.xy, r1.xy, r2.xy);"
        ]

    def test_sample_compare_is_scalar(self, decode_ps):
        assert decode_ps("sample_c_lz r0.x, v1.xyxx, t0.xxxx, s0, l(0.5)") == [
            "r0.x = diffuseMap.SampleCmpLevelZero(linearSampler, v1.xy, 0.5);"
        ]

    def test_level_of_detail(self, decode_ps):
        assert decode_ps("lod r0.x, v1.xyxx, t0.y, s0") == [
            "r0.x = diffuseMap.CalculateLevelOfDetail(linearSampler, v1.xy);"
        ]

    def test_gather_channel(self, decode_ps):
        assert decode_ps(
            "gather4_indexable(texture2d)(float,float,float,float) r0.xyzw, v1.xyxx, t0.xyzw, s0.y"
        ) == ["r0 = diffuseMap.GatherGreen(linearSampler, v1.xy);"]

    def test_gather_programmable_offset(self, decode_ps):
        assert decode_ps("gather4_po r0.xyzw, v1.xyxx, r2.xyxx, t0.xyzw, s0.x") == [
            "r0 = diffuseMap.Gather(linearSampler, v1.xy, asint(r2.xy));"
        ]

    def test_unknown_texture(self, decode_ps):
        assert decode_ps("sample r0.xyzw, v1.xyxx, t5.xyzw, s0") == [
            "r0 = t5.Sample(linearSampler, v1.xy);"
        ]


class TestLoads:
    """Test texel loads and resource queries."""

    def test_load(self, decode_ps):
        assert decode_ps(
            "ld_indexable(texture2d)(float,float,float,float) r0.xyzw, r1.xyzw, t0.xyzw"
        ) == ["r0 = diffuseMap.Load(asint(r1.xyz));"]

    def test_load_integer_format(self, decode_ps):
        assert decode_ps("ld_indexable(texture2d)(uint,uint,uint,uint) r0.x, r1.xyzw, t1.xxxx") == [
            "r0.x = asfloat(indexMap.Load(asint(r1.xyz)).x);"
        ]

    def test_resinfo_uint(self, decode, resource_reflection):
        context = decode(
            "resinfo_indexable(texture2d)(float,float,float,float)_uint r0.xy, l(0), t0.xyzw",
            reflection=resource_reflection,
        )
        assert context.statements == [
            "r0.xy = asfloat(uint4(GetResourceInfo(diffuseMap, 0))).xy;"
        ]
        assert context.resource_info_types == ["Texture2D"]
        assert context.uses_resource_info

    def test_resinfo_float(self, decode_ps):
        assert decode_ps("resinfo r0.xyzw, l(0), t0.xyzw") == [
            "r0 = GetResourceInfo(diffuseMap, 0);"
        ]

    def test_resinfo_rcp(self, decode_ps):
        assert decode_ps("resinfo_rcpFloat r0.x, l(0), t0.xxxx") == [
            "r0.x = rcp(GetResourceInfo(diffuseMap, 0)).x;"
        ]


class TestBuffers:
    """Test structured, raw and typed buffer access."""

    def test_load_structured_member(self, decode_cs):
        context = decode_cs(
            "ld_structured_indexable(structured_buffer, stride=16)(mixed,mixed,mixed,mixed) "
            "r0.xyz, r1.x, l(0), u0.xyzx"
        )
        assert context.statements == ["r0.xyz = particles[asuint(r1.x)].position.xyz;"]

    def test_load_structured_scalar(self, decode_cs):
        context = decode_cs("ld_structured r0.w, r1.x, l(12), u0.xxxx")
        assert context.statements == ["r0.w = particles[asuint(r1.x)].life;"]

    def test_store_structured(self, decode_cs):
        context = decode_cs(
            "store_structured u0.xyz, r1.x, l(0), r2.xyzx\n"
            "store_structured u0.x, r1.x, l(12), r2.x"
        )
        assert context.statements == [
            "particles[asuint(r1.x)].position.xyz = r2.xyz;",
            "particles[asuint(r1.x)].life = r2.x;",
        ]

    def test_load_raw(self, decode_cs):
        context = decode_cs(
            "ld_raw_indexable(raw_buffer)(mixed,mixed,mixed,mixed) r0.xy, l(16), u1.xyxx"
        )
        assert context.statements == ["r0.xy = asfloat(counters.Load2(16));"]

    def test_store_raw(self, decode_cs):
        context = decode_cs("store_raw u1.xy, l(16), r0.xyxx")
        assert context.statements == ["counters.Store2(16, asuint(r0.xy));"]

    def test_typed_uav(self, decode_cs):
        context = decode_cs(
            "store_uav_typed u2.xyzw, vThreadID.xyyy, r0.xyzw\n"
            "ld_uav_typed_indexable(texture2d)(float,float,float,float) r0.xyzw, r1.xyyy, u2.xyzw"
        )
        assert context.statements == [
            "result[asuint(dispatchId.xy)] = r0.xyzw;",
            "r0 = result[asuint(r1.xy)];",
        ]


class TestGroupShared:
    """Test group-shared memory access."""

    def test_raw_words(self, decode_cs):
        context = decode_cs(
            "dcl_tgsm_raw g0, 256\nstore_raw g0.x, l(4), r0.x\nld_raw r1.x, l(4), g0.xxxx"
        )
        assert context.statements == ["g0[1] = asuint(r0.x);", "r1.x = asfloat(g0[1]);"]

    def test_structured_words(self, decode_cs):
        context = decode_cs(
            "dcl_tgsm_structured g1, 8, 16\n"
            "store_structured g1.xy, r0.x, l(0), r1.xyxx\n"
            "ld_structured r2.xy, r0.x, l(0), g1.xyxx"
        )
        assert context.statements == [
            "g1[asuint(r0.x)][0] = asuint(r1.x);",
            "g1[asuint(r0.x)][1] = asuint(r1.y);",
            "r2.xy = asfloat(uint2(g1[asuint(r0.x)][0], g1[asuint(r0.x)][1]));",
        ]

    def test_atomic(self, decode_cs):
        context = decode_cs("dcl_tgsm_raw g0, 64\natomic_iadd g0, l(8), l(1)")
        assert context.statements == ["InterlockedAdd(g0[2], 1);"]


class TestAtomics:
    """Test atomic operations on UAVs."""

    def test_atomic_raw_buffer(self, decode_cs):
        context = decode_cs("atomic_iadd u1, l(0), l(1)")
        assert context.statements == ["counters.InterlockedAdd(0, 1);"]

    def test_immediate_atomic(self, decode_cs):
        context = decode_cs("imm_atomic_iadd r0.x, u1, l(0), l(1)")
        assert context.statements == [
            "{",
            "    uint original;",
            "    counters.InterlockedAdd(0, 1, original);",
            "    r0.x = asfloat(original);",
            "}",
        ]

    def test_counter(self, decode_cs):
        context = decode_cs("imm_atomic_alloc r0.x, u0\nimm_atomic_consume r1.x, u0")
        assert context.statements == [
            "r0.x = asfloat(particles.IncrementCounter());",
            "r1.x = asfloat(particles.DecrementCounter());",
        ]
