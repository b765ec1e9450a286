from asm2hlsl.decompiler import DecompiledShader, convert_file, decompile
from asm2hlsl.decompiler.errors import DecompilerError

__version__ = "0.1.0"


__all__ = [
    "DecompiledShader",
    "DecompilerError",
    "convert_file",
    "decompile",
]
