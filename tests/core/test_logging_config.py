import json
import logging
import sys

import pytest

from core.config.schemas.observability import LoggingConfig
from core.logging_config import JsonLineFormatter, configure_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_replaces_own_handler(restore_root):
    first = configure_logging(LoggingConfig(level="warn"))
    second = configure_logging(LoggingConfig(level="debug", format="json"))
    named = [h for h in restore_root.handlers if h.get_name() == "maiven"]
    assert named == [second]
    assert first not in restore_root.handlers
    assert restore_root.level == logging.DEBUG
    assert isinstance(second.formatter, JsonLineFormatter)


def test_json_line_includes_exception():
    try:
        raise ValueError("bad weights")
    except ValueError:
        record = logging.getLogger("core.registry").makeRecord(
            "core.registry", logging.ERROR, __file__, 1, "load failed id=%s", (3,),
            exc_info=sys.exc_info(),
        )
    line = json.loads(JsonLineFormatter().format(record))
    assert line["level"] == "error"
    assert line["logger"] == "core.registry"
    assert line["message"] == "load failed id=3"
    assert "ValueError: bad weights" in line["exc_info"]
