"""Command line interface for asm2hlsl.

This module provides a command-line interface for decompiling shader assembly
listings into HLSL source files, printing them, or re-converting on change.
"""

import os
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar, cast

import arrow
import typer
import watchdog.events
import watchdog.observers
from loguru import logger
from watchdog.events import FileSystemEventHandler

from asm2hlsl.decompiler import DecompiledShader, decompile, output_path
from asm2hlsl.decompiler.errors import DecompilerError

# Define type variables for TypedCallable
F = TypeVar("F", bound=Callable[..., Any])

LOG_LEVEL_ENV = "ASM2HLSL_LOG_LEVEL"


# TypedCommand decorator helper
def typed_command(app_command: Any) -> Callable[[F], F]:
    """Wrap typer command with proper typing for mypy."""

    def decorator(func: F) -> F:
        return cast(F, app_command(func))

    return decorator


app = typer.Typer(
    name="asm2hlsl",
    help=(
        "Decompile shader model 4/5 assembly listings into HLSL. "
        "Commands: convert, show, watch."
    ),
    add_completion=False,
)


def _configure_logging(verbose: bool) -> None:
    """Re-add the stderr sink at the requested level."""
    level = "DEBUG" if verbose else os.environ.get(LOG_LEVEL_ENV, "INFO")
    logger.remove()
    logger.add(sys.stderr, level=level)


def _add_header_comments(code: str, source_file: str) -> str:
    """Add generation header comments to the code.

    Args:
        code: HLSL source
        source_file: Listing the source was generated from

    Returns:
        Code with header comments
    """
    timestamp = arrow.utcnow().format("YYYY-MM-DD HH:mm:ss UTC")
    header = f"// Generated by asm2hlsl v{__import__('asm2hlsl').__version__}\n"
    header += f"// Generation time: {timestamp}\n"
    header += f"// Source file: {os.path.basename(source_file)}\n"
    header += "\n"
    return header + code


def _decompile_file(
    input_file: str, entry: str, strict: bool, stamp: bool = False
) -> DecompiledShader:
    """Read and decompile a listing, exiting with status 1 on failure."""
    try:
        source = Path(input_file).read_text()
        shader = decompile(source, entry, strict_nesting=strict)
    except OSError as e:
        logger.error(f"Failed to read {input_file}: {e}")
        raise typer.Exit(1) from e
    except DecompilerError as e:
        logger.error(f"Decompilation error: {e}")
        raise typer.Exit(1) from e

    if stamp:
        shader.code = _add_header_comments(shader.code, input_file)
    return shader


def _write_shader(shader: DecompiledShader, input_file: str, output: str | None) -> Path:
    path = output_path(input_file, output, shader.stage)
    logger.info(f"Writing {shader.stage.name.lower()} shader to {path}...")
    try:
        path.write_text(shader.code)
    except OSError as e:
        logger.error(f"Failed to write {path}: {e}")
        raise typer.Exit(1) from e
    logger.info(f"Shader written to {path}")
    return path


# Define reusable arguments and options
INPUT_ARG = typer.Argument(..., help="Shader assembly listing")
OUTPUT_OPTION = typer.Option(
    None, "--output", "-o", help="Output base path (default: input without extension)"
)
ENTRY_OPTION = typer.Option("main", "--entry", "-e", help="Entry point function name")
STRICT_OPTION = typer.Option(
    False, "--strict", help="Fail on unbalanced control flow instead of warning"
)
STAMP_OPTION = typer.Option(
    False, "--stamp", help="Prepend a generation timestamp header"
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable debug logging")


@typed_command(app.command("convert"))
def convert(
    input_file: str = INPUT_ARG,
    output: str | None = OUTPUT_OPTION,
    entry: str = ENTRY_OPTION,
    strict: bool = STRICT_OPTION,
    stamp: bool = STAMP_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Decompile a listing into an HLSL file.

    The output file name is the output base plus a stage suffix, e.g. _ps.hlsl.

    Example: asm2hlsl convert shaders/blur.asm -o build/blur
    """
    _configure_logging(verbose)
    logger.info(f"Decompiling {input_file}...")
    shader = _decompile_file(input_file, entry, strict, stamp)
    _write_shader(shader, input_file, output)


@typed_command(app.command("show"))
def show(
    input_file: str = INPUT_ARG,
    entry: str = ENTRY_OPTION,
    strict: bool = STRICT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Print the decompiled HLSL to standard output.

    Example: asm2hlsl show shaders/blur.asm
    """
    _configure_logging(verbose)
    shader = _decompile_file(input_file, entry, strict)
    typer.echo(shader.code, nl=False)


class ListingChangeHandler(FileSystemEventHandler):  # type: ignore
    """Event handler for listing file changes."""

    def __init__(
        self,
        input_file: str,
        output: str | None,
        entry: str,
        strict: bool,
        stamp: bool,
    ):
        """Initialize listing change handler.

        Args:
            input_file: Absolute path of the listing
            output: Output base path
            entry: Entry point name
            strict: Strict nesting flag
            stamp: Timestamp header flag
        """
        self.input_file = input_file
        self.output = output
        self.entry = entry
        self.strict = strict
        self.stamp = stamp
        self.needs_convert = False

    def on_modified(self, event: watchdog.events.FileSystemEvent) -> None:
        """Handle file modified event.

        Args:
            event: File system event
        """
        if event.src_path == os.path.abspath(self.input_file):
            logger.info(f"Detected changes in {self.input_file}")
            self.needs_convert = True

    def convert(self) -> None:
        """Convert the listing, keeping the watcher alive on failure."""
        self.needs_convert = False
        try:
            shader = _decompile_file(self.input_file, self.entry, self.strict, self.stamp)
            _write_shader(shader, self.input_file, self.output)
        except typer.Exit:
            logger.info("Waiting for the next change...")


@typed_command(app.command("watch"))
def watch(
    input_file: str = INPUT_ARG,
    output: str | None = OUTPUT_OPTION,
    entry: str = ENTRY_OPTION,
    strict: bool = STRICT_OPTION,
    stamp: bool = STAMP_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Watch a listing and re-convert it on every change.

    Example: asm2hlsl watch shaders/blur.asm
    """
    _configure_logging(verbose)

    # Create file system observer
    observer = watchdog.observers.Observer()
    abs_input_file = os.path.abspath(input_file)
    handler = ListingChangeHandler(abs_input_file, output, entry, strict, stamp)
    handler.convert()

    # Watch the file's directory, not the file itself
    directory = os.path.dirname(abs_input_file)
    observer.schedule(handler, path=directory, recursive=False)
    observer.start()
    logger.info(f"Watching {input_file} (press Ctrl+C to stop)...")

    try:
        while True:
            if handler.needs_convert:
                handler.convert()
            time.sleep(0.1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, stopping...")
    finally:
        observer.stop()
        observer.join()


if __name__ == "__main__":
    app()
