"""
Layered settings for the payment actions.

Three layers are merged, lowest precedence first: a ``.env`` file, the
process environment (or an explicit ``base`` mapping) and caller overrides.
The result remembers which layer supplied each key so configuration errors
can point at the right place.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, MutableMapping, Optional, Tuple

__all__ = [
    "PaymentEnvironment",
    "build_environment",
    "load_env_file",
    "read_env_file",
]

BASE_LAYER = "environment"
OVERRIDE_LAYER = "overrides"


def _parse_line(raw_line: str) -> Optional[Tuple[str, str]]:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line[0] == "#" or "=" not in line:
        return None

    key, _, value = line.partition("=")
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key.strip(), value


def read_env_file(path: str | Path) -> Dict[str, str]:
    """
    Parse ``KEY=VALUE`` lines from ``path``.

    Blank lines, ``#`` comments and lines without ``=`` are skipped. An
    ``export`` prefix and one pair of matching quotes around the value are
    removed. A missing file yields an empty mapping.
    """
    env_path = Path(path)
    if not env_path.is_file():
        logging.debug("No settings file at %s", env_path)
        return {}

    pairs = (_parse_line(line) for line in env_path.read_text(encoding="utf-8").splitlines())
    return dict(pair for pair in pairs if pair is not None)


def load_env_file(
    path: str = ".env",
    *,
    environ: Optional[MutableMapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Copy settings from ``path`` into ``environ`` (default :data:`os.environ`).

    Keys already present in ``environ`` keep their value.
    """
    target = os.environ if environ is None else environ
    for key, value in read_env_file(path).items():
        if key not in target:
            target[key] = value
    return dict(target)


@dataclass(frozen=True)
class PaymentEnvironment:
    variables: Mapping[str, str]
    sources: Mapping[str, str] = field(default_factory=dict)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(key, default)

    def source_of(self, key: str) -> Optional[str]:
        """Name of the layer that supplied ``key``: a file path, ``environment`` or ``overrides``."""
        return self.sources.get(key)


def build_environment(
    *,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> PaymentEnvironment:
    """
    Merge the settings layers into a :class:`PaymentEnvironment`.

    ``base`` replaces :data:`os.environ` when given, even if empty. With
    ``env_file=None`` no file is read.
    """
    layers: List[Tuple[str, Mapping[str, str]]] = []
    if env_file is not None:
        layers.append((env_file, read_env_file(env_file)))
    layers.append((BASE_LAYER, os.environ if base is None else base))
    if overrides:
        layers.append((OVERRIDE_LAYER, overrides))

    variables: Dict[str, str] = {}
    sources: Dict[str, str] = {}
    for name, values in layers:
        for key, value in values.items():
            variables[key] = value
            sources[key] = name
    return PaymentEnvironment(variables=variables, sources=sources)
