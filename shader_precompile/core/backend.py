"""
Compiler backend — the external shader compiler behind a small interface.

The orchestrator only sees ``CompilerBackend``: initialize once, compile
any number of times, release once.  ``DxcBackend`` drives the ``dxc``
command-line compiler through subprocess; tests substitute an in-memory
fake.
"""
from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from shader_precompile.errors import BackendInitError

logger = logging.getLogger(__name__)


class TargetKind(str, Enum):
    """Output kinds a job may request.  DXIL is the primary target."""
    DXIL = "dxil"
    SPIRV = "spirv"

    @property
    def extension(self) -> str:
        return ".dxil" if self is TargetKind.DXIL else ".spv"


@dataclass
class CompileResult:
    """Outcome of one backend invocation."""
    success: bool = False
    bytecode: bytes = b""
    error_text: str = ""
    warning_text: str = ""
    elapsed: float = 0.0


class CompilerBackend(ABC):
    """Interface every backend implements."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Compiler identity string, valid after initialize."""

    @abstractmethod
    def initialize(self) -> None:
        """Acquire the compiler.  Raises BackendInitError on failure."""

    @abstractmethod
    def compile(
        self,
        source_path: Path,
        entry_point: str,
        profile: str,
        defines: Sequence[str],
        include_dirs: Sequence[Path],
        target: TargetKind,
    ) -> CompileResult:
        """Compile one target.  Failures are reported in the result, never raised."""

    @abstractmethod
    def release(self) -> None:
        """Drop the compiler.  Called once per successful initialize."""


@contextmanager
def backend_session(backend: Optional[CompilerBackend]) -> Iterator[Optional[CompilerBackend]]:
    """
    Hold *backend* initialized for the duration of the block.

    ``release`` runs on every exit path once ``initialize`` succeeded.
    A ``None`` backend (dry run) passes straight through.
    """
    if backend is None:
        yield None
        return
    backend.initialize()
    try:
        yield backend
    finally:
        backend.release()
        logger.debug("Compiler backend released")


# =============================================================================
# dxc
# =============================================================================

def _run_quiet(cmd: List[str], timeout: int = 5) -> str:
    """Run a command and return stdout, or empty on any failure."""
    try:
        r = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        return r.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        return ""


class DxcBackend(CompilerBackend):
    """Runs the DirectX Shader Compiler executable per compile."""

    def __init__(
        self,
        executable: str = "dxc",
        search_paths: Optional[Sequence[Path | str]] = None,
        timeout: int = 120,
        spirv_target_env: str = "vulkan1.2",
    ):
        self.executable = executable
        self.search_paths = [Path(p) for p in (search_paths or [])]
        self.timeout = timeout
        self.spirv_target_env = spirv_target_env

        self._dxc_path: Optional[str] = None
        self._version: str = ""

    @property
    def version(self) -> str:
        return self._version

    @property
    def initialized(self) -> bool:
        return self._dxc_path is not None

    def _locate(self) -> Optional[str]:
        found = shutil.which(self.executable)
        if found:
            return found
        for directory in self.search_paths:
            found = shutil.which(self.executable, path=str(directory))
            if found:
                return found
        return None

    def initialize(self) -> None:
        dxc_path = self._locate()
        if dxc_path is None:
            searched = ["PATH"] + [str(p) for p in self.search_paths]
            raise BackendInitError(
                f"'{self.executable}' not found. Searched: {', '.join(searched)}"
            )

        raw = _run_quiet([dxc_path, "--version"])
        if not raw:
            raise BackendInitError(f"'{dxc_path} --version' produced no output")

        self._dxc_path = dxc_path
        self._version = raw.splitlines()[0].strip()
        logger.info("Using %s (%s)", dxc_path, self._version)

    def release(self) -> None:
        self._dxc_path = None

    def build_command(
        self,
        source_path: Path,
        entry_point: str,
        profile: str,
        defines: Sequence[str],
        include_dirs: Sequence[Path],
        target: TargetKind,
        output_path: Path,
    ) -> List[str]:
        cmd = [self._dxc_path or self.executable, "-T", profile, "-E", entry_point]
        cmd += ["-D", "HLSL=1"]
        for define in defines:
            cmd += ["-D", define]
        for inc in include_dirs:
            cmd += ["-I", str(inc)]
        if target is TargetKind.SPIRV:
            cmd += ["-spirv", f"-fspv-target-env={self.spirv_target_env}"]
        cmd += ["-Fo", str(output_path), str(source_path)]
        return cmd

    def compile(
        self,
        source_path: Path,
        entry_point: str,
        profile: str,
        defines: Sequence[str],
        include_dirs: Sequence[Path],
        target: TargetKind,
    ) -> CompileResult:
        if not self.initialized:
            return CompileResult(error_text="Compiler not initialized")

        t0 = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="shader_precompile_") as tmp:
            out_path = Path(tmp) / f"out{target.extension}"
            cmd = self.build_command(
                source_path, entry_point, profile, defines, include_dirs, target, out_path,
            )
            logger.debug("Running: %s", " ".join(cmd))

            try:
                proc = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except subprocess.TimeoutExpired:
                return CompileResult(
                    error_text=f"TIMEOUT after {self.timeout}s",
                    elapsed=time.monotonic() - t0,
                )
            except OSError as e:
                return CompileResult(error_text=str(e), elapsed=time.monotonic() - t0)

            diagnostics = (proc.stderr or "").strip()
            if proc.returncode != 0:
                return CompileResult(
                    error_text=diagnostics or f"dxc exited with code {proc.returncode}",
                    elapsed=time.monotonic() - t0,
                )

            bytecode = out_path.read_bytes() if out_path.exists() else b""

        result = CompileResult(
            success=bool(bytecode),
            bytecode=bytecode,
            warning_text=diagnostics,
            elapsed=time.monotonic() - t0,
        )
        if not bytecode:
            result.error_text = "Compiler produced no bytecode"
        return result
