from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

CONTENT_DIR = Path(__file__).resolve().parent.parent / "content"


class SeedVersionError(Exception):
    """Raised when a bundled seed pack is missing or malformed."""


@dataclass(frozen=True)
class SeedPack:
    name: str
    version: str
    payload: List[Dict[str, Any]]
    extras: Dict[str, Any]


class SeedLoader:
    """Loads versioned JSON seed packs shipped with the app."""

    def __init__(self, base_path: Optional[Path] = None) -> None:
        self.base_path = base_path or CONTENT_DIR

    def _load_json(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise SeedVersionError(f"Seed file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            try:
                return json.load(handle)
            except json.JSONDecodeError as exc:
                raise SeedVersionError(f"Invalid JSON in {path}: {exc}") from exc

    def _build_pack(self, name: str, data: Mapping[str, Any]) -> SeedPack:
        version = str(data.get("version") or "")
        if not version:
            raise SeedVersionError(f"Seed pack '{name}' missing version")
        payload = data.get("items") or []
        if not isinstance(payload, list):
            raise SeedVersionError(f"Seed pack '{name}' items must be a list")
        extras = {key: value for key, value in data.items() if key not in ("version", "items")}
        return SeedPack(name=name, version=version, payload=payload, extras=extras)

    def load_pack(self, path: str) -> SeedPack:
        data = self._load_json(self.base_path / path)
        return self._build_pack(path, data)


@lru_cache(maxsize=8)
def load_bundled_pack(path: str) -> SeedPack:
    return SeedLoader().load_pack(path)
