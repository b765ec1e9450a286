"""
Decompilation of shader assembly listings into HLSL.

This module provides the top-level interface: scanning the header into the
reflection tables, decoding the instruction body and emitting the source.
"""

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from asm2hlsl.decompiler.decoder import Decoder
from asm2hlsl.decompiler.emitter import Emitter
from asm2hlsl.decompiler.errors import DecompilerError
from asm2hlsl.decompiler.header import HeaderScanner
from asm2hlsl.decompiler.models import DecompilerConfig, ShaderStage
from asm2hlsl.decompiler.reflection import Reflection

OUTPUT_EXTENSION = ".hlsl"


@dataclass
class DecompiledShader:
    """Result of one conversion.

    Attributes:
        code: Generated HLSL source
        stage: Shader stage of the listing
    """

    code: str
    stage: ShaderStage

    @property
    def suffix(self) -> str:
        return self.stage.suffix


def decompile(
    source: str, entry_point: str = "main", *, strict_nesting: bool = False
) -> DecompiledShader:
    """Decompile a shader assembly listing.

    Every call works on fresh reflection and decoder instances, so nothing
    leaks between conversions.

    Args:
        source: Complete listing text, header comments included
        entry_point: Name of the generated entry-point function
        strict_nesting: Raise on unbalanced control flow instead of warning

    Returns:
        The generated source and the detected stage

    Raises:
        DecompilerError: If the header or the body cannot be decoded

    Examples:
        shader = decompile(Path("blur.asm").read_text())
        print(shader.code)
    """
    config = DecompilerConfig(entry_point=entry_point, strict_nesting=strict_nesting)

    reflection = Reflection()
    HeaderScanner(reflection).scan(source)
    reflection.resolve()

    context = Decoder(reflection, config).decode(source)
    if context.stage is None:
        raise DecompilerError("Decoder finished without a shader stage")

    code = Emitter(reflection, context, config).render()
    logger.debug(f"Generated {len(code.splitlines())} lines of {context.stage.name} shader")
    return DecompiledShader(code=code, stage=context.stage)


def output_path(
    input_path: str | Path, output_base: str | Path | None, stage: ShaderStage
) -> Path:
    """Build the output file name: base path, stage suffix and extension.

    Args:
        input_path: Listing path; its extension is dropped for the default base
        output_base: Explicit base path, or None
        stage: Detected shader stage

    Returns:
        Path such as ``shaders/blur_ps.hlsl``
    """
    base = Path(output_base) if output_base else Path(input_path).with_suffix("")
    return base.with_name(f"{base.name}{stage.suffix}{OUTPUT_EXTENSION}")


def convert_file(
    input_path: str | Path,
    output_base: str | Path | None = None,
    entry_point: str = "main",
    *,
    strict_nesting: bool = False,
) -> Path:
    """Decompile a listing file and write the HLSL next to it.

    The source is rendered completely before the output file is opened, so
    a failed conversion never leaves a partial file behind.

    Args:
        input_path: Listing file
        output_base: Output base path; defaults to the input path without extension
        entry_point: Name of the generated entry-point function
        strict_nesting: Raise on unbalanced control flow instead of warning

    Returns:
        Path of the written file

    Raises:
        DecompilerError: If the listing cannot be decompiled
        OSError: If the input cannot be read or the output cannot be written
    """
    source = Path(input_path).read_text()
    shader = decompile(source, entry_point, strict_nesting=strict_nesting)
    path = output_path(input_path, output_base, shader.stage)
    path.write_text(shader.code)
    return path


__all__ = [
    "DecompiledShader",
    "convert_file",
    "decompile",
    "output_path",
]
