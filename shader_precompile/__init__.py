"""
shader_precompile — incremental HLSL shader precompiler.

Hash-based change detection over source, transitive includes, defines,
profile and entry point.  Unchanged shaders are skipped; the rest are
compiled through an external backend (dxc) to DXIL and optionally SPIR-V.
"""

__version__ = "0.1.0"
SCHEMA_VERSION = "1.0"
