"""
Include resolver — transitive ``#include`` discovery for shader sources.

Resolution order for each directive:
  1. the including file's own directory
  2. configured search directories, in priority order
  3. fixed fallbacks relative to the including file

Resolution is best-effort: an include that cannot be found anywhere is
dropped from the dependency set without error.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Set

logger = logging.getLogger(__name__)

INCLUDE_RE = re.compile(r'#\s*include\s*[<"]([^>"]+)[>"]')

FALLBACK_PREFIXES = ("../include", "include", "..", "")


def scan_includes(text: str) -> List[str]:
    """Return include targets in the order they appear in *text*."""
    return INCLUDE_RE.findall(text)


class IncludeResolver:
    """Walks include directives recursively from a root source file."""

    def __init__(self, search_dirs: Optional[Sequence[Path | str]] = None):
        self.search_dirs: List[Path] = [Path(d) for d in (search_dirs or [])]

    def resolve_include(self, base_dir: Path, include: str) -> Optional[Path]:
        """Locate *include* as seen from a file living in *base_dir*."""
        candidates = [base_dir / include]
        candidates.extend(d / include for d in self.search_dirs)
        candidates.extend(base_dir / prefix / include for prefix in FALLBACK_PREFIXES)

        for candidate in candidates:
            if candidate.is_file():
                return candidate.resolve()
        return None

    def parse_dependencies(self, source_path: Path | str) -> List[str]:
        """
        Collect every file transitively included by *source_path*.

        Returns a sorted, deduplicated list of canonical absolute paths.
        The root source itself is never part of the result.
        """
        root = Path(source_path).resolve()
        visited: Set[Path] = set()
        dependencies: Set[Path] = set()
        self._walk(root, visited, dependencies)
        dependencies.discard(root)
        return sorted(str(p) for p in dependencies)

    def _walk(self, path: Path, visited: Set[Path], dependencies: Set[Path]) -> None:
        if path in visited:
            return
        visited.add(path)

        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Cannot read %s: %s", path, e)
            return

        for include in scan_includes(text):
            resolved = self.resolve_include(path.parent, include)
            if resolved is None:
                logger.debug("Unresolved include '%s' in %s", include, path)
                continue
            dependencies.add(resolved)
            self._walk(resolved, visited, dependencies)
