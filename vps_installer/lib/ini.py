"""Flat `key=value` config files (certbot credential style).

Section headers are accepted but ignored: every key lives in one namespace.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional, Union


def parse_ini(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#;":
            continue
        if line.startswith("[") and line.endswith("]"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        if key:
            out[key] = value
    return out


def load_ini(path: Union[str, Path]) -> Dict[str, str]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(path))
    return parse_ini(p.read_text(encoding="utf-8"))


def load_ini_value(key: str, path: Union[str, Path], default: Optional[str] = None) -> Optional[str]:
    return load_ini(path).get(key, default)


def render_ini(values: Mapping[str, object]) -> str:
    """Render a mapping as `key=value` lines, without a trailing newline."""

    lines = []
    for key, value in values.items():
        if "=" in key or "\n" in key or not key.strip():
            raise ValueError(f"Invalid config key {key!r}")
        text = "" if value is None else str(value)
        if "\n" in text:
            raise ValueError(f"Config value for {key!r} spans lines")
        lines.append(f"{key}={text}")
    return "\n".join(lines)
