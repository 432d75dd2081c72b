# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml

from crmb.infra.json_store import JsonStore

DEFAULT_DATA_PATH = Path(__file__).resolve().parents[1] / "defaults" / "default_data.yml"


def load_default_document(path: Path = DEFAULT_DATA_PATH) -> Any:
    """Fresh copy of the seed business document (employees, expenses, ...)."""
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


class DocumentStore:
    """The bakery business document, loaded and replaced as one unit."""

    def __init__(self, path: Path, *, default_path: Path = DEFAULT_DATA_PATH) -> None:
        self._store = JsonStore(path, lambda: load_default_document(default_path))

    @property
    def path(self) -> Path:
        return self._store.path

    @property
    def last_recovery(self) -> Optional[Path]:
        return self._store.last_recovery

    def ensure_initialized(self) -> bool:
        return self._store.ensure_initialized()

    def load(self) -> Any:
        return self._store.read()

    def save(self, doc: Any) -> None:
        self._store.write(doc)
