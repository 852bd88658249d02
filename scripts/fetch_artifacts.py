#!/usr/bin/env python
"""Prefetch model artifacts into the local cache.

Usage:
    python scripts/fetch_artifacts.py            # every definition with weights
    python scripts/fetch_artifacts.py 1 4        # selected ids
    python scripts/fetch_artifacts.py 4 --force  # redownload even if cached

Uses the same config (MAIVEN_CONFIG_DIR, MAIVEN__* env) as the API, so a
prefetched cache is picked up by the server without further I/O.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.artifacts import ArtifactCache, ArtifactError  # noqa: E402
from core.config import get_config  # noqa: E402
from core.logging_config import configure_logging  # noqa: E402
from core.registry import DefinitionSource  # noqa: E402


def fetch(ids, force=False, cfg=None, client=None) -> int:
    """Return the number of failed definitions."""
    cfg = cfg or get_config()
    source = DefinitionSource.from_dir(cfg.storage.registry_dir)
    cache = ArtifactCache.from_config(cfg, client=client)
    selected = [source.get(i) for i in ids] if ids else source.all()
    failures = 0
    for model_id, definition in zip(ids or [d.id for d in selected], selected):
        if definition is None:
            print(f"[unknown] id={model_id}")
            failures += 1
            continue
        if not definition.has_weights:
            print(f"[skip] id={definition.id} name={definition.name} (remote api)")
            continue
        try:
            paths = (cache.force if force else cache.acquire)(definition.params)
        except ArtifactError as e:
            print(f"[failed] id={definition.id} name={definition.name}: {e}")
            failures += 1
            continue
        print(
            f"[ready] id={definition.id} name={definition.name} "
            f"files={len(paths.files)} dir={paths.weights}"
        )
    return failures


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument("ids", nargs="*", type=int, help="definition ids (default: all)")
    ap.add_argument("--force", action="store_true", help="ignore cached manifests")
    args = ap.parse_args(argv)
    cfg = get_config()
    configure_logging(cfg.logging)
    return 1 if fetch(args.ids, force=args.force, cfg=cfg) else 0


if __name__ == "__main__":
    sys.exit(main())
