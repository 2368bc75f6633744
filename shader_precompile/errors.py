"""
Error types for shader_precompile.

Fatal conditions (bad configuration, backend that cannot start) are
exceptions and abort the run before any job is processed.  Per-job
failures are never raised; they become ERROR / WARNING outcomes.
"""


class PrecompileError(Exception):
    """Base exception for all precompiler failures."""
    pass


class ConfigurationError(PrecompileError):
    """Missing or invalid run configuration.  Fatal."""
    pass


class ManifestError(ConfigurationError):
    """Raised when the shader manifest cannot be loaded or yields no jobs."""

    def __init__(self, manifest_path: str, reason: str):
        self.manifest_path = manifest_path
        self.reason = reason
        super().__init__(f"Failed to load manifest {manifest_path}: {reason}")


class BackendInitError(PrecompileError):
    """Raised when the compiler backend cannot be located or started."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to initialize compiler: {reason}")


class InvalidStateTransitionError(PrecompileError):
    """Raised when a job is driven through an illegal state transition."""

    def __init__(self, job_name: str, current_state: str, target_state: str):
        self.job_name = job_name
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid state transition for job {job_name}: "
            f"{current_state} -> {target_state}"
        )
