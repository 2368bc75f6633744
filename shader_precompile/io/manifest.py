"""
Manifest loader — shaders.json → ordered list of ShaderJob.

Entries without a non-empty ``name`` or ``path`` are dropped.  A manifest
that yields no jobs at all is a load failure.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError

from shader_precompile.errors import ManifestError
from shader_precompile.io.schema import ShaderJob, ShaderManifest

logger = logging.getLogger(__name__)


class LoadedManifest:
    """Jobs plus the directory that relative source paths resolve against."""

    def __init__(self, path: Path, version: str, jobs: List[ShaderJob]):
        self.path = path
        self.base_path = path.parent
        self.version = version
        self.jobs = jobs

    def source_path(self, job: ShaderJob) -> Path:
        return self.base_path / job.path

    def __len__(self) -> int:
        return len(self.jobs)


def load_manifest(manifest_path: Path | str) -> LoadedManifest:
    """
    Read and validate a manifest file.

    Raises ManifestError if the file is unreadable, is not valid JSON,
    declares a job name twice, or contains no usable jobs.
    """
    path = Path(manifest_path).absolute()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestError(str(manifest_path), f"cannot open file ({e})") from e
    except json.JSONDecodeError as e:
        raise ManifestError(str(manifest_path), f"invalid JSON ({e})") from e

    try:
        doc = ShaderManifest.model_validate(raw)
    except ValidationError as e:
        raise ManifestError(str(manifest_path), f"no 'shaders' array ({e})") from e

    jobs: List[ShaderJob] = []
    seen = set()
    for i, entry in enumerate(doc.shaders):
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("path"):
            logger.debug("Dropping manifest entry %d: missing name or path", i)
            continue
        try:
            job = ShaderJob.model_validate(entry)
        except ValidationError as e:
            logger.debug("Dropping manifest entry %d: %s", i, e)
            continue
        if job.name in seen:
            raise ManifestError(str(manifest_path), f"duplicate shader name '{job.name}'")
        seen.add(job.name)
        jobs.append(job)

    if not jobs:
        raise ManifestError(str(manifest_path), "no shader definitions")

    return LoadedManifest(path=path, version=doc.version, jobs=jobs)
