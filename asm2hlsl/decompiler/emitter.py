"""
HLSL source emitter.

This module assembles the final translation unit from the resolved
reflection tables and the statements produced by the decoder: structs,
constant buffers, resource declarations, helper functions and the entry point.
"""

from loguru import logger

from asm2hlsl.decompiler.constants import (
    AUTO_GENERATED_HEADER,
    GS_INPUT_PRIMITIVES,
    GS_OUTPUT_STREAMS,
    GS_STREAM_NAME,
    RESOURCE_INFO_LAYOUTS,
)
from asm2hlsl.decompiler.decoder import DecoderContext
from asm2hlsl.decompiler.models import (
    DecompilerConfig,
    Parameter,
    ResourceInfo,
    ShaderStage,
)
from asm2hlsl.decompiler.reflection import Reflection, field_type

# Offset of constant-buffer field names within a line
FIELD_NAME_COLUMN = 24


class Emitter:
    """Renders one decompiled shader as HLSL source."""

    def __init__(
        self,
        reflection: Reflection,
        context: DecoderContext,
        config: DecompilerConfig | None = None,
    ):
        self.reflection = reflection
        self.context = context
        self.config = config or DecompilerConfig()

    @property
    def stage(self) -> ShaderStage:
        return self.context.stage or ShaderStage.PIXEL

    @property
    def prefix(self) -> str:
        return self.stage.prefix

    @property
    def has_input(self) -> bool:
        return bool(self.reflection.input_fields)

    @property
    def has_output(self) -> bool:
        return bool(self.reflection.output_fields) and self.stage != ShaderStage.COMPUTE

    def render(self) -> str:
        """Render the complete translation unit.

        Returns:
            HLSL source text ending with a newline
        """
        sections = [
            list(AUTO_GENERATED_HEADER),
            self._signature_structs(),
            self._structures(),
            self._constant_buffers(),
            self._resources(),
            self.context.global_declarations,
            self._resource_info_helpers(),
            self._entry_point(),
        ]
        lines: list[str] = []
        for section in sections:
            if section:
                lines.extend(section)
                lines.append("")
        return "\n".join(lines).rstrip() + "\n"

    def _block(self, opening: str, body: list[str]) -> list[str]:
        indent = self.config.indent
        return [opening, "{", *(f"{indent}{line}" for line in body), "};"]

    def _signature_structs(self) -> list[str]:
        lines: list[str] = []
        if self.has_input:
            lines.extend(
                self._block(f"struct {self.prefix}Input", self.reflection.input_fields)
            )
        if self.has_output:
            if lines:
                lines.append("")
            lines.extend(
                self._block(f"struct {self.prefix}Output", self.reflection.output_fields)
            )
        return lines

    def _structures(self) -> list[str]:
        lines: list[str] = []
        for structure in self.reflection.structures.values():
            if lines:
                lines.append("")
            fields = [f"{v.type_name} {v.name};" for v in structure.variables]
            lines.extend(self._block(f"struct {structure.name}", fields))
        return lines

    def _constant_buffers(self) -> list[str]:
        lines: list[str] = []
        for cbuffer in self.reflection.constant_buffers:
            if lines:
                lines.append("")
            indent = self.config.indent
            lines.append(f"cbuffer {cbuffer.name} : register(b{cbuffer.bind})")
            lines.append("{")
            for variable in cbuffer.variables:
                type_name = field_type(variable)
                padding = max(FIELD_NAME_COLUMN - len(indent) - len(type_name), 1)
                lines.append(f"{indent}{type_name}{' ' * padding}{variable.name};")
            lines.append("};")
        return lines

    @staticmethod
    def _declare(info: ResourceInfo, register: str) -> str:
        array = f"[{info.array_size}]" if info.array_size > 1 else ""
        return f"{info.type_name} {info.name}{array} : register({register}{info.register});"

    def _resources(self) -> list[str]:
        lines = [self._declare(info, "t") for info in self.reflection.textures]
        lines.extend(self._declare(info, "u") for info in self.reflection.uavs)
        lines.extend(self._declare(info, "s") for info in self.reflection.samplers)
        return lines

    def _resource_info_helpers(self) -> list[str]:
        """Render one ``GetResourceInfo`` overload per queried resource type."""
        lines: list[str] = []
        indent = self.config.indent
        for type_name in self.context.resource_info_types:
            base = type_name.split("<")[0]
            if base in ("Buffer", "RWBuffer"):
                body = ["uint width;", "tex.GetDimensions(width);", "info.x = width;"]
            elif base in RESOURCE_INFO_LAYOUTS:
                takes_mip, components = RESOURCE_INFO_LAYOUTS[base]
                arguments = [f"info.{c}" for c in components]
                if takes_mip:
                    arguments.insert(0, "mip")
                body = [f"tex.GetDimensions({', '.join(arguments)});"]
            else:
                logger.warning(f"No resource info helper for {type_name}")
                continue
            if lines:
                lines.append("")
            lines.append(f"float4 GetResourceInfo({type_name} tex, uint mip)")
            lines.append("{")
            lines.append(f"{indent}float4 info = 0;")
            lines.extend(f"{indent}{line}" for line in body)
            lines.append(f"{indent}return info;")
            lines.append("}")
        return lines

    def _parameters(self) -> list[str]:
        parameters: list[Parameter] = []
        stream = self.context.has_output_stream
        if self.has_input:
            if self.stage == ShaderStage.GEOMETRY:
                qualifier, count = GS_INPUT_PRIMITIVES.get(
                    self.context.input_primitive or "triangle", ("triangle", 3)
                )
                parameters.append(
                    Parameter(f"{self.prefix}Input", f"input[{count}]", qualifier=qualifier)
                )
            else:
                parameters.append(Parameter(f"{self.prefix}Input", "input"))

        for parameter in [*self.reflection.input_parameters, *self.context.parameters]:
            if all(p.name != parameter.name for p in parameters):
                parameters.append(parameter)

        if stream and self.has_output:
            topology = self.context.output_topology or "trianglestrip"
            stream_type = GS_OUTPUT_STREAMS.get(topology, "TriangleStream")
            parameters.append(
                Parameter(
                    f"{stream_type}<{self.prefix}Output>",
                    GS_STREAM_NAME,
                    qualifier="inout",
                )
            )
        return [p.declaration for p in parameters]

    def _entry_point(self) -> list[str]:
        indent = self.config.indent
        stream = self.context.has_output_stream
        returns_output = self.has_output and not stream
        lines: list[str] = []

        if self.stage == ShaderStage.COMPUTE:
            if self.context.thread_group is None:
                logger.warning("No thread group size declared, using [numthreads(1, 1, 1)]")
            x, y, z = self.context.thread_group or (1, 1, 1)
            lines.append(f"[numthreads({x}, {y}, {z})]")
        elif stream and self.context.max_vertex_count is not None:
            lines.append(f"[maxvertexcount({self.context.max_vertex_count})]")

        return_type = f"{self.prefix}Output" if returns_output else "void"
        parameters = ", ".join(self._parameters())
        lines.append(f"{return_type} {self.config.entry_point}({parameters})")
        lines.append("{")
        if self.has_output:
            output = f"{self.prefix}Output"
            lines.append(f"{indent}{output} output = ({output})0;")
        lines.extend(f"{indent}{s}" if s else "" for s in self.context.statements)
        if returns_output:
            lines.append(f"{indent}return output;")
        lines.append("}")
        return lines
