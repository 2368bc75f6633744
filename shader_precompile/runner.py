"""
Precompiler runner — top-level orchestration: manifest → outputs + cache + log.

This module ties manifest loading, the compiler backend, the cache store
and the orchestrator together into a single ``run_precompile`` function
that can be called from the CLI or programmatically.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from shader_precompile import __version__
from shader_precompile.config import settings
from shader_precompile.core.backend import CompilerBackend, DxcBackend, backend_session
from shader_precompile.core.include_resolver import IncludeResolver
from shader_precompile.core.orchestrator import BuildOrchestrator
from shader_precompile.core.report import ProgressCallback, RunReport
from shader_precompile.errors import ConfigurationError, PrecompileError
from shader_precompile.io.cache_store import CacheStore
from shader_precompile.io.manifest import load_manifest
from shader_precompile.io.schema import RunOutcome
from shader_precompile.io.writer import summary_line, write_report
from shader_precompile.policy.outcome import OutcomeStatus

logger = logging.getLogger(__name__)

# Searched after the shader's own directory, relative to the manifest directory
DEFAULT_SEARCH_SUBDIRS = ("include", "shaders", "shaders/include")


def default_search_dirs(base_path: Path) -> List[Path]:
    """Manifest-relative include directories, in priority order."""
    return [base_path] + [base_path / sub for sub in DEFAULT_SEARCH_SUBDIRS]


def run_precompile(
    manifest_path: Path,
    output_dir: Path,
    report_path: Optional[Path] = None,
    cache_path: Optional[Path] = None,
    force: bool = False,
    dry_run: bool = False,
    backend: Optional[CompilerBackend] = None,
    include_dirs: Optional[Sequence[Path]] = None,
    progress: Optional[ProgressCallback] = None,
) -> RunReport:
    """
    Run one incremental precompile pass.

    Parameters
    ----------
    manifest_path : Path
        shaders.json describing the jobs.
    output_dir : Path
        Directory that receives ``<name>.dxil`` / ``<name>.spv``.
    report_path, cache_path : Path, optional
        Defaults come from ``settings``.
    force : bool
        Recompile every job regardless of the cache.
    dry_run : bool
        Classify only: the backend is never started and neither the
        cache, the outputs nor the report are written.
    backend : CompilerBackend, optional
        Defaults to a ``DxcBackend`` built from ``settings``.
    include_dirs : Sequence[Path], optional
        Extra include search directories, after the manifest-relative ones.
    progress : callable, optional
        Called as ``progress(index, total, outcome)`` after every job.

    Raises
    ------
    ConfigurationError
        Manifest missing, unreadable or empty.
    BackendInitError
        Backend could not be started (not raised in dry run).
    """
    if manifest_path is None or output_dir is None:
        raise ConfigurationError("--manifest and --output are required")

    report_path = Path(report_path or settings.REPORT_PATH)
    cache_path = Path(cache_path or settings.CACHE_PATH)
    output_dir = Path(output_dir)

    manifest = load_manifest(manifest_path)
    logger.info("Loaded %d shader definitions from %s", len(manifest), manifest.path)

    if backend is None and not dry_run:
        backend = DxcBackend(
            executable=settings.DXC_PATH,
            timeout=settings.COMPILE_TIMEOUT,
            spirv_target_env=settings.SPIRV_TARGET_ENV,
        )

    with backend_session(None if dry_run else backend) as active:
        compiler_version = active.version if active is not None else ""

        store = CacheStore(compiler_version=compiler_version)
        cache_loaded = store.load(cache_path)

        force_rebuild = force
        if cache_loaded and compiler_version and store.compiler_version_changed(compiler_version):
            logger.info(
                "Compiler version changed (%s -> %s), forcing full rebuild",
                store.compiler_version, compiler_version,
            )
            force_rebuild = True
        if compiler_version:
            store.set_compiler_version(compiler_version)

        search_dirs = default_search_dirs(manifest.base_path)
        search_dirs += [Path(d) for d in settings.INCLUDE_DIRS]
        search_dirs += [Path(d) for d in (include_dirs or [])]
        resolver = IncludeResolver(search_dirs)

        report = RunReport(
            compiler_version=compiler_version or "unknown",
            incremental=not force_rebuild,
            total_jobs=len(manifest),
            progress=progress,
        )
        orchestrator = BuildOrchestrator(
            store=store,
            resolver=resolver,
            output_dir=output_dir,
            base_path=manifest.base_path,
            backend=active,
            report=report,
            force=force_rebuild,
            dry_run=dry_run,
        )

        if not dry_run:
            output_dir.mkdir(parents=True, exist_ok=True)
        orchestrator.run(manifest.jobs)

    if not dry_run:
        store.save(cache_path)
        write_report(report, report_path)
        logger.info("Log written to: %s", report_path)

    return report


# ── CLI ──────────────────────────────────────────────────────────────────────

def _print_progress(verbose: bool) -> ProgressCallback:
    def _progress(index: int, total: int, outcome: RunOutcome) -> None:
        if outcome.status == OutcomeStatus.SKIP and not verbose:
            return
        line = f"[{index}/{total}] [{outcome.status.value}] {outcome.job_name}"
        if outcome.elapsed:
            line += f" ({outcome.elapsed:.3f}s)"
        if outcome.message and outcome.status in (OutcomeStatus.ERROR, OutcomeStatus.WARNING):
            line += f": {outcome.message.splitlines()[0]}"
        print(line, file=sys.stderr if outcome.status == OutcomeStatus.ERROR else sys.stdout)
    return _progress


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shader-precompile",
        description="Incremental HLSL shader precompiler (DXIL + optional SPIR-V)",
    )
    parser.add_argument(
        "--manifest",
        type=Path,
        required=True,
        help="Path to shader manifest JSON file",
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Output directory for compiled shaders",
    )
    parser.add_argument(
        "--log",
        type=Path,
        default=None,
        help=f"Path to log file (default: {settings.REPORT_PATH})",
    )
    parser.add_argument(
        "--cache",
        type=Path,
        default=None,
        help=f"Path to hash cache file (default: {settings.CACHE_PATH})",
    )
    parser.add_argument(
        "-I", "--include-dir",
        dest="include_dirs",
        type=Path,
        action="append",
        default=[],
        help="Additional include search directory (repeatable)",
    )
    parser.add_argument(
        "--dxc",
        default=None,
        help=f"dxc executable (default: {settings.DXC_PATH})",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Force full rebuild (ignore cache)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be compiled without compiling",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point.  Returns the process exit code."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    backend = None
    if args.dxc and not args.dry_run:
        backend = DxcBackend(
            executable=args.dxc,
            timeout=settings.COMPILE_TIMEOUT,
            spirv_target_env=settings.SPIRV_TARGET_ENV,
        )

    print("=== Shader Precompiler ===")
    try:
        report = run_precompile(
            manifest_path=args.manifest,
            output_dir=args.output,
            report_path=args.log,
            cache_path=args.cache,
            force=args.force,
            dry_run=args.dry_run,
            backend=backend,
            include_dirs=args.include_dirs,
            progress=_print_progress(args.verbose),
        )
    except PrecompileError as e:
        logger.error("%s", e)
        return 1

    counts = report.counts()
    print("\n=== Summary ===")
    print(f"  Compiled: {report.compiled_count}")
    print(f"  Skipped:  {counts[OutcomeStatus.SKIP]}")
    print(f"  Errors:   {report.error_count}")
    print(summary_line(report))

    if not report.succeeded:
        print(f"\nBuild FAILED with {report.error_count} error(s)", file=sys.stderr)
        if not args.dry_run:
            print(f"See {args.log or settings.REPORT_PATH} for details", file=sys.stderr)
        return 1

    print("\nBuild SUCCEEDED")
    return 0


if __name__ == "__main__":
    sys.exit(main())
