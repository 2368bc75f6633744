"""
Test fixtures for shader_precompile.

All fixtures are pure-Python: no dxc, no GPU.  Shader trees are written
into ``tmp_path`` and the compiler is replaced by an in-memory fake that
records every invocation.
"""
from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from shader_precompile.core.backend import CompileResult, CompilerBackend, TargetKind
from shader_precompile.errors import BackendInitError


# ── Sample HLSL sources ──────────────────────────────────────────────────────

COMMON_HLSLI = textwrap.dedent("""\
    #ifndef COMMON_HLSLI
    #define COMMON_HLSLI
    #include "Math.hlsli"
    static const float PI = 3.14159265f;
    #endif
""")

MATH_HLSLI = textwrap.dedent("""\
    float Square(float x) { return x * x; }
""")

LIGHTING_VS = textwrap.dedent("""\
    #include "include/Common.hlsli"

    float4 VSMain(float3 pos : POSITION) : SV_POSITION
    {
        return float4(pos * Square(PI), 1.0f);
    }
""")

COMPOSITE_PS = textwrap.dedent("""\
    #include <Common.hlsli>

    float4 PSMain() : SV_TARGET
    {
        return float4(1, 0, 0, 1);
    }
""")


# ── Fake backend ─────────────────────────────────────────────────────────────

class FakeBackend(CompilerBackend):
    """
    Records compile calls and returns canned results.

    ``fail`` / ``warn`` map (source file name, target) to diagnostic text.
    """

    def __init__(self, version: str = "fake-dxc 1.0", fail_init: bool = False):
        self._version = version
        self.fail_init = fail_init
        self.fail: Dict[Tuple[str, TargetKind], str] = {}
        self.warn: Dict[Tuple[str, TargetKind], str] = {}
        self.calls: List[Tuple[str, str, str, Tuple[str, ...], TargetKind]] = []
        self.include_dirs: List[List[Path]] = []
        self.init_count = 0
        self.release_count = 0

    @property
    def version(self) -> str:
        return self._version

    def initialize(self) -> None:
        if self.fail_init:
            raise BackendInitError("fake backend refused to start")
        self.init_count += 1

    def release(self) -> None:
        self.release_count += 1

    def compile(
        self,
        source_path: Path,
        entry_point: str,
        profile: str,
        defines: Sequence[str],
        include_dirs: Sequence[Path],
        target: TargetKind,
    ) -> CompileResult:
        name = Path(source_path).name
        self.calls.append((name, entry_point, profile, tuple(defines), target))
        self.include_dirs.append(list(include_dirs))

        key = (name, target)
        if key in self.fail:
            return CompileResult(error_text=self.fail[key], elapsed=0.01)
        bytecode = f"{target.value}:{name}:{entry_point}:{profile}".encode()
        return CompileResult(
            success=True,
            bytecode=bytecode,
            warning_text=self.warn.get(key, ""),
            elapsed=0.01,
        )

    def compiled_names(self, target: Optional[TargetKind] = None) -> List[str]:
        return [c[0] for c in self.calls if target is None or c[4] == target]


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_backend():
    """Factory for extra backends within one test (e.g. a second run)."""
    return FakeBackend


@pytest.fixture
def shader_dir(tmp_path: Path) -> Path:
    """A small shader tree with a two-level include chain."""
    root = tmp_path / "shaders"
    (root / "include").mkdir(parents=True)
    (root / "include" / "Common.hlsli").write_text(COMMON_HLSLI)
    (root / "include" / "Math.hlsli").write_text(MATH_HLSLI)
    (root / "Lighting.hlsl").write_text(LIGHTING_VS)
    (root / "Composite.hlsl").write_text(COMPOSITE_PS)
    return root


def _shader(name: str, path: str, entry: str, profile: str, **extra) -> dict:
    d = {"name": name, "path": path, "entry": entry, "profile": profile}
    d.update(extra)
    return d


@pytest.fixture
def default_shaders() -> List[dict]:
    return [
        _shader("LightingVS", "Lighting.hlsl", "VSMain", "vs_6_0", defines=["USE_SHADOWS=1"]),
        _shader("CompositePS", "Composite.hlsl", "PSMain", "ps_6_0", spirv=True),
    ]


@pytest.fixture
def write_manifest(shader_dir: Path):
    """Return a writer: write_manifest(shaders) -> manifest path."""
    def _write(shaders: List[dict], version: str = "1.0") -> Path:
        path = shader_dir / "shaders.json"
        path.write_text(json.dumps({"version": version, "shaders": shaders}, indent=2))
        return path
    return _write


@pytest.fixture
def manifest_path(write_manifest, default_shaders) -> Path:
    return write_manifest(default_shaders)


@pytest.fixture
def run_paths(tmp_path: Path) -> Dict[str, Path]:
    return {
        "output_dir": tmp_path / "out",
        "cache_path": tmp_path / "state" / "shader_cache.json",
        "report_path": tmp_path / "state" / "shader_compile.log",
    }
