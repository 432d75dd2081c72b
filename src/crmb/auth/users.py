# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from crmb.auth.passwords import hash_password, verify_password
from crmb.infra.json_store import JsonStore

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_USER = "user"

# (id, username, plain password, role, display name)
BOOTSTRAP_USERS = (
    (1, "admin", "admin123", ROLE_ADMIN, "المدير"),
    (2, "user1", "user123", ROLE_USER, "موظف 1"),
)


@dataclass(frozen=True)
class Identity:
    """What a session knows about its user. Never carries the hash."""

    id: int
    username: str
    role: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    password_hash: str
    role: str
    name: str

    def identity(self) -> Identity:
        return Identity(id=self.id, username=self.username, role=self.role, name=self.name)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "password": self.password_hash,
            "role": self.role,
            "name": self.name,
        }


def is_admin(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.role == ROLE_ADMIN


def bootstrap_users() -> List[Dict[str, Any]]:
    return [
        UserRecord(
            id=uid,
            username=username,
            password_hash=hash_password(plain),
            role=role,
            name=name,
        ).to_json()
        for uid, username, plain, role, name in BOOTSTRAP_USERS
    ]


def _is_user_list(raw: Any) -> bool:
    return isinstance(raw, list)


def _parse_users(raw: Any) -> List[UserRecord]:
    rows = raw if isinstance(raw, list) else []
    out: List[UserRecord] = []
    for row in rows:
        if not isinstance(row, dict):
            logger.warning("Skipping non-object user row: %r", row)
            continue
        username = str(row.get("username") or "")
        try:
            uid = int(row.get("id"))
        except (TypeError, ValueError):
            uid = None
        if uid is None or not username:
            logger.warning("Skipping unusable user row (id=%r, username=%r)", row.get("id"), username)
            continue
        out.append(
            UserRecord(
                id=uid,
                username=username,
                password_hash=str(row.get("password") or ""),
                role=str(row.get("role") or ROLE_USER),
                name=str(row.get("name") or username),
            )
        )
    return out


class UserStore:
    """User records persisted as a JSON list in users.json."""

    def __init__(self, path: Path) -> None:
        self._store = JsonStore(path, bootstrap_users, validate=_is_user_list)

    @property
    def path(self) -> Path:
        return self._store.path

    @property
    def last_recovery(self) -> Optional[Path]:
        return self._store.last_recovery

    def ensure_initialized(self) -> bool:
        return self._store.ensure_initialized()

    def load_all(self) -> List[UserRecord]:
        return _parse_users(self._store.read())

    def save_all(self, users: List[UserRecord]) -> None:
        self._store.write([u.to_json() for u in users])

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        # Exact, case-sensitive match.
        for u in self.load_all():
            if u.username == username:
                return u
        return None

    def find_by_id(self, user_id: int) -> Optional[UserRecord]:
        for u in self.load_all():
            if u.id == user_id:
                return u
        return None

    def authenticate(self, username: str, password: str) -> Optional[UserRecord]:
        if not username or not password:
            return None
        u = self.find_by_username(username)
        if not u or not verify_password(u.password_hash, password):
            return None
        return u
