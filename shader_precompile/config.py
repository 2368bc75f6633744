"""
Precompiler configuration
"""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Defaults for the precompiler; CLI flags take precedence."""

    # Persisted files
    REPORT_PATH: str = "shader_compile.log"
    CACHE_PATH: str = "shader_cache.json"

    # Backend
    DXC_PATH: str = "dxc"
    COMPILE_TIMEOUT: int = 120  # seconds, per backend invocation
    SPIRV_TARGET_ENV: str = "vulkan1.2"

    # Extra include search directories, appended after the manifest-relative ones
    INCLUDE_DIRS: List[str] = []

    class Config:
        env_prefix = "SHADER_PRECOMPILE_"
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
