from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

import orjson

from feedharvest.records import Record

logger = logging.getLogger(__name__)


def checkpoint_filename(prefix: str, user: str, now: Optional[datetime] = None) -> str:
    """``<prefix>_<user>_<ISO-8601 with ':' and '.' replaced by '-'>.json``."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{prefix}_{user}_{stamp}.json"


class CheckpointWriter:
    """Write full snapshots of the record set as pretty-printed JSON arrays.

    Each call is independent: it serializes whatever it is given to a new
    timestamped file and never touches the records themselves.
    """

    def __init__(self, output_dir: Path, prefix: str = "x_posts", user: str = "unknown"):
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self.user = user
        self.written = 0

    def write(self, records: Iterable[Record]) -> Optional[Path]:
        data = [r.to_dict() for r in records]
        if not data:
            return None
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self._unique_path(self.output_dir / checkpoint_filename(self.prefix, self.user))
            # Exclusive create so a checkpoint never overwrites an earlier one.
            with path.open("xb") as f:
                f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        except OSError:
            logger.exception(f"[CHECKPOINT] failed to save {len(data)} records to {self.output_dir}")
            return None
        self.written += 1
        logger.info(f"[CHECKPOINT] saved records={len(data)} file={path}")
        return path

    @staticmethod
    def _unique_path(path: Path) -> Path:
        candidate = path
        i = 1
        while candidate.exists():
            candidate = path.with_name(f"{path.stem}-{i}{path.suffix}")
            i += 1
        return candidate
