# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from crmb.auth.users import Identity

DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class _Entry:
    identity: Identity
    expires_at: float


class SessionManager:
    """Server-side sessions keyed by an opaque random token.

    Expiry is absolute (issued_at + max_age); there is no sliding renewal.
    Expired entries are dropped on lookup and whenever a new session is issued.
    """

    def __init__(self, *, max_age: int = DEFAULT_MAX_AGE_SECONDS, clock: Callable[[], float] = time.time) -> None:
        self.max_age = max_age
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, _Entry] = {}

    def issue(self, identity: Identity) -> str:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._drop_expired(now)
            self._sessions[token] = _Entry(identity=identity, expires_at=now + self.max_age)
        return token

    def resolve(self, token: str) -> Optional[Identity]:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._sessions[token]
                return None
            return entry.identity

    def revoke(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def purge_expired(self) -> int:
        with self._lock:
            return self._drop_expired(self._clock())

    def _drop_expired(self, now: float) -> int:
        # Caller holds self._lock.
        expired = [t for t, e in self._sessions.items() if now >= e.expires_at]
        for t in expired:
            del self._sessions[t]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class CookieSigner:
    """Signs session tokens for the cookie so forged values are rejected early."""

    def __init__(self, secret: str, *, salt: str = "crmb.session.v1", max_age: int = DEFAULT_MAX_AGE_SECONDS) -> None:
        if not secret:
            raise RuntimeError("Missing SECRET_KEY")
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt=salt)
        self.max_age = max_age

    def sign(self, token: str) -> str:
        return self._serializer.dumps({"t": token})

    def unsign(self, value: str) -> Optional[str]:
        if not value:
            return None
        try:
            data = self._serializer.loads(value, max_age=self.max_age)
        except (BadSignature, BadTimeSignature):
            return None
        t = (data or {}).get("t") if isinstance(data, dict) else None
        t = str(t or "").strip()
        return t or None
