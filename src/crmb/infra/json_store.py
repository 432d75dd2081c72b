# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import logging
import math
import os
import shutil
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class UnexpectedContent(ValueError):
    """Valid JSON whose top-level shape the store cannot use."""


def reject_constant(name: str) -> Any:
    """parse_constant hook: NaN and Infinity are not JSON and cannot be served back."""
    raise ValueError(f"Non-finite number {name} is not valid JSON")


def finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Number {text} overflows to {value}")
    return value


def loads_strict(raw: Any) -> Any:
    """json.loads that refuses NaN, Infinity and overflowing floats."""
    return json.loads(raw, parse_constant=reject_constant, parse_float=finite_float)


def backup_corrupt(path: Path) -> Path:
    """Move an unreadable file aside with a timestamped suffix."""
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    dst = path.with_suffix(path.suffix + f".corrupt_{ts}")
    shutil.move(str(path), str(dst))
    return dst


class JsonStore:
    """A single JSON file read and written as a whole.

    The file is seeded from ``default_factory`` the first time it is needed.
    If the file exists but cannot be parsed (or fails ``validate``), it is moved aside (never
    overwritten in place), a warning is logged and the default is written
    back so the service keeps running.
    """

    def __init__(
        self,
        path: Path,
        default_factory: Callable[[], Any],
        *,
        validate: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        self.path = Path(path)
        self._default_factory = default_factory
        self._validate = validate
        self._init_lock = threading.Lock()
        self.last_recovery: Optional[Path] = None

    def ensure_initialized(self) -> bool:
        """Seed the file if it does not exist. Returns True when it seeded."""
        if self.path.exists():
            return False
        with self._init_lock:
            if self.path.exists():
                return False
            self.write(self._default_factory())
            logger.info("Seeded %s with default content", self.path)
            return True

    def read(self) -> Any:
        self.ensure_initialized()
        try:
            return self._parse()
        except (OSError, ValueError) as e:
            return self._recover(e)

    def _parse(self) -> Any:
        value = loads_strict(self.path.read_text(encoding="utf-8"))
        if self._validate is not None and not self._validate(value):
            raise UnexpectedContent(f"unexpected {type(value).__name__} content")
        return value

    def write(self, value: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        raw = json.dumps(value, ensure_ascii=False, indent=2, allow_nan=False)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=self.path.name + ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(raw)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _recover(self, error: Exception) -> Any:
        with self._init_lock:
            backup = None
            if self.path.exists():
                # Another thread may have recovered the file while we waited.
                try:
                    return self._parse()
                except (OSError, ValueError):
                    backup = backup_corrupt(self.path)
            logger.warning(
                "Unreadable store %s (%s); moved to %s and restored defaults",
                self.path,
                error,
                backup,
            )
            self.last_recovery = backup
            value = self._default_factory()
            self.write(value)
            return value
