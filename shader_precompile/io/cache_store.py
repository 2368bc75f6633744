"""
Cache store — persistent job name → CacheEntry mapping.

Loaded once at the start of a run and saved once at the end.  Saving
replaces the file atomically, so an interrupted run leaves the previous
cache intact.

Not safe for concurrent use by several processes; callers serialize
access to a given cache file.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterator, Optional

from pydantic import ValidationError

from shader_precompile import SCHEMA_VERSION
from shader_precompile.io.schema import CacheDocument, CacheEntry

logger = logging.getLogger(__name__)


class CacheStore:
    """In-memory view of shader_cache.json."""

    def __init__(self, compiler_version: str = ""):
        self._entries: Dict[str, CacheEntry] = {}
        self._compiler_version = compiler_version
        self.cache_path: Optional[Path] = None

    # -----------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------

    def load(self, cache_path: Path | str) -> bool:
        """
        Replace the in-memory state with the document at *cache_path*.

        Returns False when there was nothing usable to load.  A missing
        file is the normal first-run case; an unreadable or malformed
        document is logged and likewise treated as an empty store.
        """
        self.cache_path = Path(cache_path)
        self._entries = {}

        if not self.cache_path.exists():
            logger.info("No cache at %s, starting empty", self.cache_path)
            return False

        try:
            raw = json.loads(self.cache_path.read_text(encoding="utf-8"))
            doc = CacheDocument.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring unreadable cache %s: %s", self.cache_path, e)
            return False

        self._compiler_version = doc.compiler_version
        self._entries = dict(doc.entries)
        logger.debug("Loaded %d cache entries from %s", len(self._entries), self.cache_path)
        return True

    def save(self, cache_path: Path | str | None = None) -> Path:
        """Write the full store to *cache_path* (default: the loaded path)."""
        target = Path(cache_path) if cache_path is not None else self.cache_path
        if target is None:
            raise ValueError("No cache path given and none loaded")
        target.parent.mkdir(parents=True, exist_ok=True)

        doc = CacheDocument(
            version=SCHEMA_VERSION,
            compiler_version=self._compiler_version,
            entries=self._entries,
        )
        payload = json.dumps(doc.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug("Saved %d cache entries to %s", len(self._entries), target)
        return target

    # -----------------------------------------------------------------
    # Compiler identity
    # -----------------------------------------------------------------

    @property
    def compiler_version(self) -> str:
        return self._compiler_version

    def set_compiler_version(self, version: str) -> None:
        self._compiler_version = version

    def compiler_version_changed(self, current_version: str) -> bool:
        """True if a stored identity exists and differs from *current_version*."""
        return bool(self._compiler_version) and self._compiler_version != current_version

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def is_up_to_date(self, name: str, current_hash: str, compiler_version: str = "") -> bool:
        """
        A job is up to date iff it has a record, the record's hash equals
        *current_hash*, and the recorded primary output still exists.

        When *compiler_version* is given, the record must also have been
        produced by that compiler.
        """
        entry = self._entries.get(name)
        if entry is None:
            return False
        if entry.hash != current_hash:
            return False
        if compiler_version and entry.compiler_version != compiler_version:
            return False
        if not entry.output_dxil or not Path(entry.output_dxil).exists():
            return False
        return True

    def has_entry(self, name: str) -> bool:
        return name in self._entries

    def get_entry(self, name: str) -> Optional[CacheEntry]:
        return self._entries.get(name)

    def get_cached_hash(self, name: str) -> str:
        entry = self._entries.get(name)
        return entry.hash if entry is not None else ""

    # -----------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------

    def update_entry(self, name: str, entry: CacheEntry) -> None:
        """Insert or wholesale-replace the record for *name*."""
        self._entries[name] = entry

    def remove_entry(self, name: str) -> None:
        self._entries.pop(name, None)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entries))
