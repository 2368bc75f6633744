"""
Schema — Pydantic models for the precompiler's persisted documents.

Documents:
  1. shaders.json          — manifest of compile jobs (input).
  2. shader_cache.json     — last-known-good record per job (read/write).

Run outcomes are also modelled here so the report writer and tests share
one definition.
"""
from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from shader_precompile import SCHEMA_VERSION
from shader_precompile.policy.outcome import OutcomeStatus


# ── Manifest ────────────────────────────────────────────────────────────────

class ShaderJob(BaseModel):
    """One named compile unit.  Immutable once loaded."""
    model_config = ConfigDict(frozen=True)

    name: str
    path: str                # source path, relative to the manifest directory
    entry: str = "main"
    profile: str = ""
    defines: List[str] = Field(default_factory=list)
    spirv: bool = False      # also build the secondary (SPIR-V) target


class ShaderManifest(BaseModel):
    """shaders.json — raw entries are validated one by one by the loader."""
    version: str = ""
    shaders: List[Any] = Field(default_factory=list)


# ── Cache ───────────────────────────────────────────────────────────────────

class CacheEntry(BaseModel):
    """Facts about the last successful build of one job."""
    hash: str
    source: str
    includes: List[str] = Field(default_factory=list)
    defines: List[str] = Field(default_factory=list)
    output_dxil: str = ""
    output_spirv: str = ""
    last_compiled: str = ""
    profile: str = ""
    entry: str = ""
    compiler_version: str = ""   # identity of the compiler that produced the outputs
    input_hashes: Dict[str, str] = Field(default_factory=dict)


class CacheDocument(BaseModel):
    """
    shader_cache.json — whole-store snapshot.
    """
    version: str = SCHEMA_VERSION
    compiler_version: str = ""
    entries: Dict[str, CacheEntry] = Field(default_factory=dict)


# ── Run outcome ─────────────────────────────────────────────────────────────

class RunOutcome(BaseModel):
    """Terminal result of one job in one run."""
    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    job_name: str
    profile: str = ""
    source_path: str = ""
    output_path: str = ""
    message: str = ""
    old_hash: str = ""
    new_hash: str = ""
    changed_inputs: List[str] = Field(default_factory=list)
    elapsed: float = 0.0
