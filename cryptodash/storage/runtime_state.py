from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cryptodash.core.logging import get_logger
from cryptodash.data.models import TrackedCoin

_log = get_logger(__name__)


def atomic_write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=path.parent, delete=False) as tmp:
        json.dump(payload, tmp, ensure_ascii=False, indent=2)
        tmp.flush()
        temp_path = Path(tmp.name)
    temp_path.replace(path)


@dataclass
class TrackedCoinStore:
    path: Path

    def load(self) -> list[TrackedCoin]:
        if not self.path.exists():
            return []
        try:
            rows = json.loads(self.path.read_text(encoding="utf-8"))
            return [TrackedCoin.from_dict(row) for row in rows]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            _log.error("failed to load tracked coins from %s: %s", self.path, exc)
            return []

    def save(self, coins: list[TrackedCoin]) -> None:
        try:
            atomic_write_json(self.path, [coin.to_dict() for coin in coins])
        except OSError as exc:
            _log.error("failed to save tracked coins to %s: %s", self.path, exc)
