"""Tests for io.manifest."""
from pathlib import Path

import pytest

from shader_precompile.errors import ConfigurationError, ManifestError
from shader_precompile.io.manifest import load_manifest


class TestLoadManifest:

    def test_loads_jobs_in_order(self, manifest_path: Path, shader_dir: Path):
        manifest = load_manifest(manifest_path)
        assert [j.name for j in manifest.jobs] == ["LightingVS", "CompositePS"]
        assert manifest.version == "1.0"
        assert manifest.base_path == shader_dir.absolute()
        assert manifest.source_path(manifest.jobs[0]) == shader_dir.absolute() / "Lighting.hlsl"

    def test_defaults_applied(self, write_manifest):
        manifest = load_manifest(write_manifest([{"name": "Bare", "path": "Bare.hlsl"}]))
        job = manifest.jobs[0]
        assert job.entry == "main"
        assert job.profile == ""
        assert job.defines == []
        assert job.spirv is False

    def test_incomplete_entries_dropped(self, write_manifest):
        path = write_manifest([
            {"name": "", "path": "A.hlsl"},
            {"name": "NoPath"},
            {"path": "Anon.hlsl"},
            {"name": "Good", "path": "Good.hlsl"},
            "not an object",
        ])
        assert [j.name for j in load_manifest(path).jobs] == ["Good"]

    def test_invalid_field_type_dropped(self, write_manifest):
        path = write_manifest([
            {"name": "Bad", "path": "Bad.hlsl", "defines": "X=1"},
            {"name": "Good", "path": "Good.hlsl"},
        ])
        assert [j.name for j in load_manifest(path).jobs] == ["Good"]

    def test_no_usable_jobs(self, write_manifest):
        with pytest.raises(ManifestError, match="no shader definitions"):
            load_manifest(write_manifest([{"name": "NoPath"}]))

    def test_duplicate_names(self, write_manifest):
        path = write_manifest([
            {"name": "Same", "path": "A.hlsl"},
            {"name": "Same", "path": "B.hlsl"},
        ])
        with pytest.raises(ManifestError, match="duplicate"):
            load_manifest(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ManifestError, match="cannot open"):
            load_manifest(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "shaders.json"
        path.write_text("{ shaders: ")
        with pytest.raises(ManifestError, match="invalid JSON"):
            load_manifest(path)

    def test_manifest_error_is_configuration_error(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            load_manifest(tmp_path / "absent.json")
