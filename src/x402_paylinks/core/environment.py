"""
Assemble the ``X402_*`` settings from ``os.environ``, a ``.env`` file and
explicit overrides.

Precedence, lowest first: ``.env`` file, process environment (or ``base``),
overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

__all__ = ["ServiceEnvironment", "build_environment", "parse_env_file"]

_QUOTES = ("'", '"')


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return value[1:-1]
    # strip trailing "# comment" from unquoted values
    hash_index = value.find(" #")
    if hash_index != -1:
        value = value[:hash_index]
    return value.strip()


def parse_env_file(path: Path) -> Dict[str, str]:
    """
    Parse ``KEY=VALUE`` lines. A missing file yields an empty mapping.
    """
    values: Dict[str, str] = {}
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return values

    for raw_line in data.splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = _unquote(value.strip())
    return values


@dataclass(frozen=True)
class ServiceEnvironment:
    variables: Mapping[str, str]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(key, default)


def build_environment(
    *,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> ServiceEnvironment:
    """
    ``base`` defaults to :data:`os.environ` only when it is ``None``. An empty
    mapping is honoured as-is, which lets callers build a configuration that
    ignores the process environment. Pass ``env_file=None`` to skip the file.
    """
    merged: Dict[str, str] = dict(os.environ if base is None else base)

    if env_file is not None:
        for key, value in parse_env_file(Path(env_file)).items():
            merged.setdefault(key, value)

    if overrides:
        merged.update(overrides)

    return ServiceEnvironment(variables=merged)
