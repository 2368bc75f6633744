"""
Content hasher — 64-bit fingerprint over every input that affects bytecode.

FNV-1a per input, folded together with a boost-style combine step.
Includes and defines are sorted before folding so the fingerprint does
not depend on discovery or manifest order.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable

FNV_OFFSET_BASIS = 0xCBF29CE484222325
FNV_PRIME = 0x100000001B3
GOLDEN_RATIO = 0x9E3779B9
MASK_64 = 0xFFFFFFFFFFFFFFFF


def fnv1a(data: bytes) -> int:
    """FNV-1a 64-bit hash of *data*."""
    h = FNV_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV_PRIME) & MASK_64
    return h


def combine(h1: int, h2: int) -> int:
    """Mix *h2* into the running hash *h1*."""
    return (h1 ^ ((h2 + GOLDEN_RATIO + (h1 << 6) + (h1 >> 2)) & MASK_64)) & MASK_64


def to_hex(h: int) -> str:
    return f"{h:016x}"


def read_bytes(path: Path | str) -> bytes:
    """File contents, or empty bytes if the file cannot be read."""
    try:
        return Path(path).read_bytes()
    except OSError:
        return b""


def hash_file(path: Path | str) -> int:
    return fnv1a(read_bytes(path))


def compute_shader_hash(
    source_path: Path | str,
    include_paths: Iterable[str],
    defines: Iterable[str],
    profile: str,
    entry_point: str,
) -> str:
    """
    Fingerprint one compile job.

    Folds, in order: source bytes, each include's bytes (sorted by path),
    each define (sorted), the profile and the entry point.  Returns a
    16-character lowercase hex string.
    """
    h = FNV_OFFSET_BASIS
    h = combine(h, hash_file(source_path))

    for inc in sorted(include_paths):
        h = combine(h, hash_file(inc))

    for define in sorted(defines):
        h = combine(h, fnv1a(define.encode("utf-8")))

    h = combine(h, fnv1a(profile.encode("utf-8")))
    h = combine(h, fnv1a(entry_point.encode("utf-8")))
    return to_hex(h)


def fingerprint_inputs(paths: Iterable[Path | str]) -> Dict[str, str]:
    """Per-file hex fingerprints, keyed by the path as given."""
    return {str(p): to_hex(hash_file(p)) for p in paths}
