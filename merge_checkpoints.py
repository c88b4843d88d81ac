#!/usr/bin/env python3
"""Merge harvest checkpoint files into a single deduplicated JSON array.

Deduplication key: identityKey; the earliest collected copy wins (by collectedAt,
then input order). Each checkpoint is a full snapshot of its run, so merging the
last checkpoint of several runs yields every post seen across them.

Usage (from project root):
  python merge_checkpoints.py \
      --inputs data/x_posts_someuser_*.json \
      --output data/merged.json

You can also just run with no args to auto-discover data/*_*.json checkpoints.
"""
from __future__ import annotations
import argparse, datetime, glob, json, os, sys
from typing import Dict, Iterable, List, Optional

DEFAULT_GLOB_PATTERNS = [
    'data/*_*.json',
]

TS_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
]

_MAX_TS = datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)


def parse_ts(val: Optional[str]):
    if not val or not isinstance(val, str):
        return None
    for fmt in TS_FORMATS:
        try:
            # allow Z
            v = val.replace('Z', '+00:00')
            ts = datetime.datetime.strptime(v, fmt)
        except ValueError:
            continue
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=datetime.timezone.utc)
        return ts
    return None


def iter_checkpoint(path: str):
    """Yield record dicts from one checkpoint file; unreadable files are reported and skipped."""
    try:
        with open(path, 'rb') as f:
            data = json.load(f)
    except FileNotFoundError:
        return
    except (OSError, ValueError) as e:
        sys.stderr.write(f"[WARN] Failed reading {path}: {e}\n")
        return
    if not isinstance(data, list):
        sys.stderr.write(f"[WARN] Skipping {path}: expected a JSON array\n")
        return
    for rec in data:
        if isinstance(rec, dict):
            yield rec


def merge_records(sources: Iterable[Iterable[dict]]) -> List[dict]:
    """First-collected record per identityKey, in collection order."""
    ordered = []
    seq = 0
    for records in sources:
        for rec in records:
            ordered.append((parse_ts(rec.get('collectedAt')) or _MAX_TS, seq, rec))
            seq += 1
    ordered.sort(key=lambda t: (t[0], t[1]))
    merged: Dict[str, dict] = {}
    for _, _, rec in ordered:
        key = rec.get('identityKey')
        if not key or key in merged:
            continue
        merged[key] = rec
    return list(merged.values())


def _unique_path(path: str) -> str:
    """Return a path that does not exist yet by appending a timestamp (and counter if needed).

    Examples:
      data/merged.json -> data/merged-20250825-123456.json
    """
    dirpath = os.path.dirname(path) or '.'
    base = os.path.basename(path)
    name, ext = os.path.splitext(base)
    candidate = path
    if os.path.exists(candidate):
        ts = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
        candidate = os.path.join(dirpath, f"{name}-{ts}{ext}")
        i = 1
        while os.path.exists(candidate):
            candidate = os.path.join(dirpath, f"{name}-{ts}-{i}{ext}")
            i += 1
    return candidate


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser()
    ap.add_argument('--inputs', nargs='*', help='Explicit checkpoint files (glob patterns allowed).')
    ap.add_argument('--output', default='data/merged.json', help='Output JSON file path.')
    args = ap.parse_args(argv)

    patterns = args.inputs if args.inputs else DEFAULT_GLOB_PATTERNS
    files: List[str] = []
    for pat in patterns:
        files.extend(sorted(glob.glob(pat)))
    out_abs = os.path.abspath(args.output)
    # Deduplicate & keep stable order
    seen_paths = set()
    ordered_files = []
    for p in files:
        if os.path.isfile(p) and p not in seen_paths and os.path.abspath(p) != out_abs:
            seen_paths.add(p)
            ordered_files.append(p)

    if not ordered_files:
        print('No input files found.', file=sys.stderr)
        return 1

    print(f"[MERGE] Inputs ({len(ordered_files)}):")
    for f in ordered_files:
        print(f"  - {f}")

    total = 0

    def _counted(path):
        nonlocal total
        for rec in iter_checkpoint(path):
            total += 1
            yield rec

    merged = merge_records(_counted(f) for f in ordered_files)

    # Ensure output dir exists first
    out_dir = os.path.dirname(args.output)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    final_out = _unique_path(args.output)
    # Use exclusive-create mode to avoid any accidental overwrite in race conditions
    with open(final_out, 'x', encoding='utf-8') as out:
        json.dump(merged, out, ensure_ascii=False, indent=2)
    print(f"[MERGE] Wrote {len(merged)} unique posts (from {total} records) -> {final_out}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
