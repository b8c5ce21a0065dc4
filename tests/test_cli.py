"""Tests for the gallery CLI."""

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from gallery.cli import main


@pytest.fixture(autouse=True)
def _no_index(monkeypatch):
    monkeypatch.delenv("GALLERY_INDEX_URL", raising=False)


def _write_manifest(directory: Path, version: str = "1.0.0", **extra) -> str:
    package = {"id": "Foo.Bar", "version": version, "description": "A test package", "authors": ["alice"]}
    package.update(extra)
    path = directory / f"foo-{version}.yaml"
    path.write_text(yaml.dump({"package": package}))
    return str(path)


def _run(tmp_path: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(main, ["--store-dir", str(tmp_path / "store"), *args])


def test_validate_ok(tmp_path):
    result = _run(tmp_path, "validate", _write_manifest(tmp_path))
    assert result.exit_code == 0
    assert "Foo.Bar 1.0.0 is valid" in result.output


def test_validate_reports_issues(tmp_path):
    result = _run(tmp_path, "validate", _write_manifest(tmp_path, title="t" * 300))
    assert result.exit_code == 1
    assert "Title" in result.output


def test_upload_and_show(tmp_path):
    result = _run(tmp_path, "upload", _write_manifest(tmp_path), "--as", "alice")
    assert result.exit_code == 0, result.output
    assert "Foo.Bar@1.0.0" in result.output

    result = _run(tmp_path, "show", "foo.bar")
    assert result.exit_code == 0
    assert "Foo.Bar" in result.output
    assert "alice" in result.output


def test_upload_by_non_owner_fails(tmp_path):
    _run(tmp_path, "upload", _write_manifest(tmp_path), "--as", "alice")
    result = _run(tmp_path, "upload", _write_manifest(tmp_path, "2.0.0"), "--as", "bob")
    assert result.exit_code == 1
    assert "not available" in result.output


def test_duplicate_upload_fails(tmp_path):
    _run(tmp_path, "upload", _write_manifest(tmp_path), "--as", "alice")
    result = _run(tmp_path, "upload", _write_manifest(tmp_path, "1.0"), "--as", "alice")
    assert result.exit_code == 1
    assert "already" in result.output


def test_show_missing_package(tmp_path):
    result = _run(tmp_path, "show", "Nope")
    assert result.exit_code == 1


def test_unlist_and_list(tmp_path):
    _run(tmp_path, "upload", _write_manifest(tmp_path), "--as", "alice")

    result = _run(tmp_path, "unlist", "Foo.Bar", "1.0.0")
    assert result.exit_code == 0
    assert "alice owns no packages" in _run(tmp_path, "owned", "alice").output
    assert "Foo.Bar" in _run(tmp_path, "owned", "alice", "--include-unlisted").output

    result = _run(tmp_path, "list", "Foo.Bar", "1.0.0")
    assert result.exit_code == 0
    assert "Foo.Bar" in _run(tmp_path, "owned", "alice").output


def test_dependents(tmp_path):
    _run(tmp_path, "upload", _write_manifest(tmp_path), "--as", "alice")
    app = tmp_path / "app.yaml"
    app.write_text(yaml.dump({"package": {
        "id": "App",
        "version": "1.0.0",
        "dependencies": [{"packages": [{"id": "Foo.Bar", "range": "[1.0.0,2.0.0)"}]}],
    }}))
    _run(tmp_path, "upload", str(app), "--as", "alice")

    result = _run(tmp_path, "dependents", "Foo.Bar", "1.0.0")
    assert result.exit_code == 0
    assert "App@1.0.0" in result.output


def test_ownership_flow(tmp_path):
    _run(tmp_path, "upload", _write_manifest(tmp_path), "--as", "alice")

    result = _run(tmp_path, "owners", "request", "Foo.Bar", "bob", "--as", "alice")
    assert result.exit_code == 0
    token = result.output.split("Confirmation token:")[1].split()[0]

    result = _run(tmp_path, "owners", "confirm", "Foo.Bar", "wrong", "--as", "bob")
    assert result.exit_code == 1

    result = _run(tmp_path, "owners", "confirm", "Foo.Bar", token, "--as", "bob")
    assert result.exit_code == 0
    assert "bob now owns Foo.Bar" in result.output

    result = _run(tmp_path, "owners", "remove", "Foo.Bar", "alice")
    assert result.exit_code == 0

    result = _run(tmp_path, "owners", "remove", "Foo.Bar", "bob")
    assert result.exit_code == 1
    assert "only owner" in result.output
