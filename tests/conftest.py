"""Pytest configuration ensuring project root is importable.

Adds repository root (``core``) and ``src`` (``maiven``) to sys.path
explicitly to avoid interpreter/path quirks, and isolates config, events
and metrics between tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _isolate_config_env():  # noqa: D401
    """Ensure global config/env side effects do not leak between tests.

    - Clear aggregated config + definition caches between tests
    - Restore MAIVEN_CONFIG_DIR to original value
    - Reset metrics and any-event subscribers
    """
    from core import metrics
    from core.config import clear_config_cache
    from core.events import reset_listeners_for_tests
    from core.registry.loader import clear_definition_cache

    prev = os.environ.get("MAIVEN_CONFIG_DIR")
    clear_config_cache()
    clear_definition_cache()
    metrics.reset_for_tests()
    try:
        yield
    finally:
        clear_config_cache()
        clear_definition_cache()
        reset_listeners_for_tests()
        if prev is None:
            os.environ.pop("MAIVEN_CONFIG_DIR", None)
        else:
            os.environ["MAIVEN_CONFIG_DIR"] = prev
