from __future__ import annotations

import json
from typing import Any, Optional

import yaml

from exprnode.expr_runtime import ExpressionNode


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode(encoding or 'utf-8', errors='replace')
    return str(data)


def detect_format(path_hint: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns a canonical format name among: 'json', 'yaml'.
    Uses the file extension first; falls back to simple data sniffing if provided.
    """
    p = (path_hint or "").lower()
    if p.endswith('.json'):
        return 'json'
    if p.endswith('.yaml') or p.endswith('.yml'):
        return 'yaml'

    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            return 'json'
        if s:
            # YAML is a superset of JSON; anything else structured is read as YAML
            return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                fmt: Optional[str] = None,
                encoding: Optional[str] = None) -> Any:
    """
    Convert stored text (bytes/string) to plain Python structures.
    Supported fmt: 'json', 'yaml'. If fmt is None, the data is sniffed.
    """
    text = _norm_text(data, encoding=encoding)
    f = (fmt or detect_format(data_hint=text) or '').lower()
    if f == 'json':
        return json.loads(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def serialize(value: Any, *, fmt: str, pretty: bool = True) -> str:
    """
    Convert a plain Python value into a textual representation.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    if f == 'json':
        return json.dumps(value, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(value, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def dump_node(node: ExpressionNode, *, fmt: str = 'json', pretty: bool = True) -> str:
    return serialize(node.to_dict(), fmt=fmt, pretty=pretty)


def load_node(data: bytes | bytearray | str, *, fmt: Optional[str] = None) -> ExpressionNode:
    """Rebuild a node from stored state. The AST is always re-derived by reparsing the text."""
    state = deserialize(data, fmt=fmt)
    if not isinstance(state, dict):
        raise ValueError(f"Expected a mapping of node state, got {type(state).__name__}")
    return ExpressionNode.from_dict(state)


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "dump_node",
    "load_node",
]
