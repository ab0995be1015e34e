from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional

from filelock import FileLock

from .utils import get_cache_dir


logger = logging.getLogger(__name__)


def cache_key(namespace: str, *parts: Any) -> str:
    """Stable key for a request; safe as a file name across processes."""
    blob = json.dumps(parts, ensure_ascii=False, sort_keys=True, default=str)
    digest = hashlib.sha1(blob.encode("utf-8")).hexdigest()[:20]
    return f"{namespace}_{digest}"


class Cache:
    """JSON-file cache for geocoding responses, shared between runs."""

    def __init__(self, cache_dir: Optional[Path] = None) -> None:
        self.root = cache_dir or get_cache_dir()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            with p.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.debug("Ignoring unreadable cache entry %s: %s", p.name, e)
            return None

    def set(self, key: str, value: Any) -> None:
        p = self._path(key)
        with FileLock(str(p) + ".lock"):
            with p.open("w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)

    def throttle(self, name: str, min_interval: float) -> None:
        """Block until `min_interval` seconds passed since the last call for `name`.

        The timestamp lives on disk under a file lock so concurrent workers and
        separate processes share one budget.
        """
        ts_path = self.root / f"{name}.last"
        with FileLock(str(ts_path) + ".lock"):
            last = 0.0
            if ts_path.exists():
                try:
                    last = float(ts_path.read_text().strip() or "0")
                except (OSError, ValueError):
                    last = 0.0
            elapsed = time.time() - last
            if 0 <= elapsed < min_interval:
                time.sleep(min_interval - elapsed)
            ts_path.write_text(str(time.time()))

    def clear(self) -> int:
        removed = 0
        for item in self.root.glob("*.json"):
            try:
                item.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Could not remove cache entry %s: %s", item, e)
        return removed
