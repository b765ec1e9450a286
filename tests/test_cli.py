"""Tests for the asm2hlsl command-line interface."""

import os
from pathlib import Path
from tempfile import NamedTemporaryFile, TemporaryDirectory

import pytest
from typer.testing import CliRunner
from watchdog.events import FileModifiedEvent

from asm2hlsl.main import ListingChangeHandler, app

runner = CliRunner()

LISTINGS_DIR = Path(__file__).parent / "data" / "listings"

pytestmark = pytest.mark.cli


@pytest.fixture
def listing_file():
    """Create a temporary listing file for testing."""
    with NamedTemporaryFile(suffix=".asm", mode="w", delete=False) as f:
        f.write((LISTINGS_DIR / "passthrough.asm").read_text())
        path = f.name

    yield path
    os.unlink(path)
    generated = Path(path).with_name(Path(path).stem + "_vs.hlsl")
    if generated.exists():
        generated.unlink()


def test_help():
    """Test that the CLI help command works."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Decompile shader model" in result.stdout


def test_convert_help():
    result = runner.invoke(app, ["convert", "--help"])
    assert result.exit_code == 0
    assert "--entry" in result.stdout


def test_show(listing_file):
    """Test printing the decompiled source."""
    result = runner.invoke(app, ["show", listing_file])
    assert result.exit_code == 0
    assert "struct VSInput" in result.stdout
    assert "VSOutput main(VSInput input)" in result.stdout


def test_show_entry_point(listing_file):
    result = runner.invoke(app, ["show", listing_file, "-e", "VSMain"])
    assert result.exit_code == 0
    assert "VSOutput VSMain(VSInput input)" in result.stdout


def test_convert_default_output(listing_file):
    """Test that convert writes next to the listing with a stage suffix."""
    result = runner.invoke(app, ["convert", listing_file])
    assert result.exit_code == 0
    output_file = Path(listing_file).with_name(Path(listing_file).stem + "_vs.hlsl")
    assert output_file.exists()
    assert "output.Position = input.Position;" in output_file.read_text()


def test_convert_output_base(listing_file):
    with TemporaryDirectory() as temp_dir:
        base = Path(temp_dir) / "passthrough"
        result = runner.invoke(app, ["convert", listing_file, "-o", str(base)])
        assert result.exit_code == 0
        output_file = Path(temp_dir) / "passthrough_vs.hlsl"
        assert output_file.exists()
        assert output_file.read_text().startswith("// <auto-generated>")


def test_convert_stamp(listing_file):
    """Test that --stamp prepends the generation header."""
    with TemporaryDirectory() as temp_dir:
        base = Path(temp_dir) / "stamped"
        result = runner.invoke(app, ["convert", listing_file, "-o", str(base), "--stamp"])
        assert result.exit_code == 0
        content = (Path(temp_dir) / "stamped_vs.hlsl").read_text()
        assert content.startswith("// Generated by asm2hlsl v")
        assert "// Generation time:" in content
        assert f"// Source file: {os.path.basename(listing_file)}" in content


def test_missing_file():
    result = runner.invoke(app, ["convert", "does_not_exist.asm"])
    assert result.exit_code == 1


def test_malformed_header():
    """Test that a broken header exits with status 1 and writes nothing."""
    with TemporaryDirectory() as temp_dir:
        listing = Path(temp_dir) / "broken.asm"
        listing.write_text((LISTINGS_DIR / "broken_header.asm").read_text())
        result = runner.invoke(app, ["convert", str(listing)])
        assert result.exit_code == 1
        assert list(Path(temp_dir).glob("*.hlsl")) == []


def test_strict_nesting():
    listing = str(LISTINGS_DIR / "unbalanced.asm")
    assert runner.invoke(app, ["show", listing]).exit_code == 0
    assert runner.invoke(app, ["show", listing, "--strict"]).exit_code == 1


class TestListingChangeHandler:
    """Test the watch command's change handler."""

    def test_flags_only_the_watched_file(self, listing_file):
        handler = ListingChangeHandler(
            os.path.abspath(listing_file), None, "main", False, False
        )
        handler.on_modified(FileModifiedEvent(os.path.abspath(listing_file) + ".bak"))
        assert not handler.needs_convert
        handler.on_modified(FileModifiedEvent(os.path.abspath(listing_file)))
        assert handler.needs_convert

    def test_convert_survives_errors(self):
        with TemporaryDirectory() as temp_dir:
            listing = Path(temp_dir) / "broken.asm"
            listing.write_text((LISTINGS_DIR / "broken_header.asm").read_text())
            handler = ListingChangeHandler(str(listing), None, "main", False, False)
            handler.needs_convert = True
            handler.convert()
            assert not handler.needs_convert
            assert list(Path(temp_dir).glob("*.hlsl")) == []
