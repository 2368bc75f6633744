"""
Build orchestrator — drive each manifest job to exactly one outcome.

Per-job state machine::

    NOT_STARTED ─┬─> SKIPPED ──────────────────────> RECORDED
                 ├─> COMPILING ─┬─> SUCCEEDED ─────> RECORDED
                 │              └─> FAILED ────────> RECORDED
                 └─> RECORDED   (dry run: classified, never compiled)

A failed compile never touches the cache, so a stale-but-valid record
survives transient backend errors.  A successful compile replaces the
job's record wholesale.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from shader_precompile.core.backend import CompileResult, CompilerBackend, TargetKind
from shader_precompile.core.hasher import compute_shader_hash, fingerprint_inputs
from shader_precompile.core.include_resolver import IncludeResolver
from shader_precompile.core.report import RunReport
from shader_precompile.errors import InvalidStateTransitionError
from shader_precompile.io.cache_store import CacheStore
from shader_precompile.io.schema import CacheEntry, RunOutcome, ShaderJob
from shader_precompile.policy.outcome import OutcomeStatus, classify_compiled

logger = logging.getLogger(__name__)


# ── Job state machine ────────────────────────────────────────────────────────

class JobState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    SKIPPED = "SKIPPED"
    COMPILING = "COMPILING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    RECORDED = "RECORDED"


_TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.NOT_STARTED: frozenset({JobState.SKIPPED, JobState.COMPILING, JobState.RECORDED}),
    JobState.SKIPPED: frozenset({JobState.RECORDED}),
    JobState.COMPILING: frozenset({JobState.SUCCEEDED, JobState.FAILED}),
    JobState.SUCCEEDED: frozenset({JobState.RECORDED}),
    JobState.FAILED: frozenset({JobState.RECORDED}),
    JobState.RECORDED: frozenset(),
}


@dataclass
class JobTracker:
    """Current state of one job plus the path it took."""
    job_name: str
    state: JobState = JobState.NOT_STARTED
    history: List[JobState] = field(default_factory=lambda: [JobState.NOT_STARTED])

    def advance(self, target: JobState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidStateTransitionError(self.job_name, self.state.value, target.value)
        self.state = target
        self.history.append(target)


# ── Helpers ──────────────────────────────────────────────────────────────────

def now_iso() -> str:
    """Current UTC time, second precision, ``Z`` suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def describe_changes(
    old: Optional[CacheEntry],
    new_hash: str,
    input_hashes: Dict[str, str],
    includes: Sequence[str],
    job: ShaderJob,
    forced: bool,
    compiler_version: str = "",
) -> List[str]:
    """
    Human-readable list of what differs from the previous successful build.
    """
    if old is None:
        return []

    changes: List[str] = []
    if old.input_hashes:
        for path in sorted(set(old.input_hashes) | set(input_hashes)):
            before = old.input_hashes.get(path)
            after = input_hashes.get(path)
            if before is None:
                changes.append(f"added: {path}")
            elif after is None:
                changes.append(f"removed: {path}")
            elif before != after:
                changes.append(f"modified: {path}")
    else:
        old_inc, new_inc = set(old.includes), set(includes)
        changes.extend(f"added: {p}" for p in sorted(new_inc - old_inc))
        changes.extend(f"removed: {p}" for p in sorted(old_inc - new_inc))

    if sorted(old.defines) != sorted(job.defines):
        changes.append(f"defines: {sorted(old.defines)} -> {sorted(job.defines)}")
    if old.profile and old.profile != job.profile:
        changes.append(f"profile: {old.profile} -> {job.profile}")
    if old.entry and old.entry != job.entry:
        changes.append(f"entry: {old.entry} -> {job.entry}")
    if compiler_version and old.compiler_version != compiler_version:
        changes.append(f"compiler: {old.compiler_version or 'unknown'} -> {compiler_version}")

    if old.hash == new_hash and old.output_dxil and not Path(old.output_dxil).exists():
        changes.append(f"output missing: {old.output_dxil}")
    if forced and not changes:
        changes.append("forced rebuild")
    return changes


def _dedupe_existing(dirs: Iterable[Path]) -> List[Path]:
    seen = set()
    out: List[Path] = []
    for d in dirs:
        resolved = d.resolve()
        if resolved in seen or not resolved.is_dir():
            continue
        seen.add(resolved)
        out.append(resolved)
    return out


# ── Orchestrator ─────────────────────────────────────────────────────────────

class BuildOrchestrator:
    """
    Processes jobs one at a time against a loaded CacheStore.

    The orchestrator owns *store* and *report* for the duration of the
    run; persisting the store is the caller's job.
    """

    def __init__(
        self,
        store: CacheStore,
        resolver: IncludeResolver,
        output_dir: Path,
        base_path: Path,
        backend: Optional[CompilerBackend] = None,
        report: Optional[RunReport] = None,
        force: bool = False,
        dry_run: bool = False,
    ):
        if backend is None and not dry_run:
            raise ValueError("A compiler backend is required unless dry_run is set")
        self.store = store
        self.resolver = resolver
        self.output_dir = Path(output_dir).resolve()
        self.base_path = Path(base_path)
        self.backend = backend
        self.report = report if report is not None else RunReport()
        self.force = force
        self.dry_run = dry_run
        self.trackers: Dict[str, JobTracker] = {}

    @property
    def compiler_version(self) -> str:
        """Identity recorded with, and required of, cache records."""
        if self.backend is not None:
            return self.backend.version
        return self.store.compiler_version

    # -----------------------------------------------------------------
    # Paths
    # -----------------------------------------------------------------

    def output_path(self, job: ShaderJob, target: TargetKind) -> Path:
        return self.output_dir / f"{job.name}{target.extension}"

    def include_dirs_for(self, source_path: Path) -> List[Path]:
        """Directories handed to the backend for ``-I``."""
        parent = source_path.parent
        return _dedupe_existing(
            [parent, *self.resolver.search_dirs, parent / ".." / "include", parent / "include"]
        )

    # -----------------------------------------------------------------
    # Run
    # -----------------------------------------------------------------

    def run(self, jobs: Iterable[ShaderJob]) -> RunReport:
        for job in jobs:
            self.report.add(self.process(job))
        return self.report

    def process(self, job: ShaderJob) -> RunOutcome:
        """Take one job from NOT_STARTED to RECORDED and return its outcome."""
        tracker = JobTracker(job.name)
        self.trackers[job.name] = tracker
        source_path = self.base_path / job.path

        if not source_path.is_file():
            tracker.advance(JobState.COMPILING)
            tracker.advance(JobState.FAILED)
            tracker.advance(JobState.RECORDED)
            logger.error("%s: source file not found: %s", job.name, source_path)
            return RunOutcome(
                status=OutcomeStatus.ERROR,
                job_name=job.name,
                profile=job.profile,
                source_path=job.path,
                message=f"Source file not found: {source_path}",
            )

        includes = self.resolver.parse_dependencies(source_path)
        current_hash = compute_shader_hash(
            source_path, includes, job.defines, job.profile, job.entry,
        )
        old_entry = self.store.get_entry(job.name)
        old_hash = old_entry.hash if old_entry is not None else ""

        needs_compile = self.force or not self.store.is_up_to_date(
            job.name, current_hash, self.compiler_version,
        )
        if not needs_compile:
            tracker.advance(JobState.SKIPPED)
            tracker.advance(JobState.RECORDED)
            logger.debug("%s: up to date (%s)", job.name, current_hash)
            return RunOutcome(
                status=OutcomeStatus.SKIP,
                job_name=job.name,
                profile=job.profile,
                source_path=job.path,
                output_path=old_entry.output_dxil if old_entry is not None else "",
                old_hash=old_hash,
                new_hash=current_hash,
            )

        source_key = str(source_path.resolve())
        input_hashes = fingerprint_inputs([source_key, *includes])
        changes = describe_changes(
            old_entry, current_hash, input_hashes, includes, job, self.force,
            compiler_version=self.compiler_version,
        )
        dxil_path = self.output_path(job, TargetKind.DXIL)

        if self.dry_run:
            tracker.advance(JobState.RECORDED)
            return RunOutcome(
                status=OutcomeStatus.RECOMPILE if old_entry is not None else OutcomeStatus.NEW,
                job_name=job.name,
                profile=job.profile,
                source_path=job.path,
                output_path=str(dxil_path),
                message="would compile (dry run)",
                old_hash=old_hash,
                new_hash=current_hash,
                changed_inputs=changes,
            )

        tracker.advance(JobState.COMPILING)
        include_dirs = self.include_dirs_for(source_path)

        primary = self._compile(job, source_path, include_dirs, TargetKind.DXIL)
        elapsed = primary.elapsed
        if not primary.success:
            tracker.advance(JobState.FAILED)
            tracker.advance(JobState.RECORDED)
            message = primary.error_text or "DXIL compilation failed"
            logger.error("%s: %s", job.name, message)
            return RunOutcome(
                status=OutcomeStatus.ERROR,
                job_name=job.name,
                profile=job.profile,
                source_path=job.path,
                message=message,
                old_hash=old_hash,
                new_hash=current_hash,
                elapsed=elapsed,
            )

        try:
            self._save_bytecode(primary.bytecode, dxil_path)
        except OSError as e:
            tracker.advance(JobState.FAILED)
            tracker.advance(JobState.RECORDED)
            logger.error("%s: failed to save DXIL: %s", job.name, e)
            return RunOutcome(
                status=OutcomeStatus.ERROR,
                job_name=job.name,
                profile=job.profile,
                source_path=job.path,
                message=f"Failed to save DXIL to {dxil_path}: {e}",
                old_hash=old_hash,
                new_hash=current_hash,
                elapsed=elapsed,
            )

        notes: List[str] = []
        if primary.warning_text:
            notes.append(primary.warning_text)

        spirv_output = ""
        secondary_failed = False
        if job.spirv:
            spirv_path = self.output_path(job, TargetKind.SPIRV)
            secondary = self._compile(job, source_path, include_dirs, TargetKind.SPIRV)
            elapsed += secondary.elapsed
            if secondary.success:
                try:
                    self._save_bytecode(secondary.bytecode, spirv_path)
                    spirv_output = str(spirv_path)
                except OSError as e:
                    secondary_failed = True
                    notes.append(f"Failed to save SPIR-V to {spirv_path}: {e}")
            else:
                secondary_failed = True
                notes.append(
                    "SPIR-V compilation failed: "
                    + (secondary.error_text or "no bytecode produced")
                )
            if secondary_failed:
                logger.warning("%s: SPIR-V target failed", job.name)

        self.store.update_entry(job.name, CacheEntry(
            hash=current_hash,
            source=job.path,
            includes=list(includes),
            defines=list(job.defines),
            output_dxil=str(dxil_path),
            output_spirv=spirv_output,
            last_compiled=now_iso(),
            profile=job.profile,
            entry=job.entry,
            compiler_version=self.compiler_version,
            input_hashes=input_hashes,
        ))
        tracker.advance(JobState.SUCCEEDED)
        tracker.advance(JobState.RECORDED)

        status = classify_compiled(old_entry is not None, primary.warning_text, secondary_failed)
        return RunOutcome(
            status=status,
            job_name=job.name,
            profile=job.profile,
            source_path=job.path,
            output_path=str(dxil_path),
            message="\n".join(notes),
            old_hash=old_hash,
            new_hash=current_hash,
            changed_inputs=changes,
            elapsed=elapsed,
        )

    # -----------------------------------------------------------------
    # Backend calls
    # -----------------------------------------------------------------

    def _compile(
        self,
        job: ShaderJob,
        source_path: Path,
        include_dirs: List[Path],
        target: TargetKind,
    ) -> CompileResult:
        assert self.backend is not None
        logger.debug("[COMPILE] %s -> %s", job.name, target.value)
        return self.backend.compile(
            source_path,
            job.entry,
            job.profile,
            list(job.defines),
            include_dirs,
            target,
        )

    @staticmethod
    def _save_bytecode(bytecode: bytes, output_path: Path) -> None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(bytecode)
