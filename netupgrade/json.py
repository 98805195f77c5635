"""JSON abstraction."""

from __future__ import annotations

from typing import Any

import orjson

loads = orjson.loads


def dumps(obj: Any, *, indent: bool = False) -> str:
    """Dump JSON."""
    return orjson.dumps(obj, option=orjson.OPT_INDENT_2 if indent else None).decode()
