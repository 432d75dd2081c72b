# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEV_SECRET_KEY = "crmb-secret-2024-bakery"


def _truthy(value: str) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    users_path: Path
    document_path: Path
    secret_key: str
    session_salt: str
    session_max_age: int
    cookie_name: str
    cookie_secure: bool

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment (evaluated at call time)."""
        data_dir = Path(os.getenv("CRMB_DATA_DIR", "data")).resolve()
        users_path = Path(os.getenv("CRMB_USERS_PATH", str(data_dir / "users.json"))).resolve()
        document_path = Path(os.getenv("CRMB_DOCUMENT_PATH", str(data_dir / "data.json"))).resolve()

        secret = os.getenv("SECRET_KEY") or os.getenv("CRMB_SECRET_KEY")
        if not secret:
            logger.warning("SECRET_KEY (or CRMB_SECRET_KEY) not set; using the development secret")
            secret = DEV_SECRET_KEY

        return cls(
            data_dir=data_dir,
            users_path=users_path,
            document_path=document_path,
            secret_key=secret,
            session_salt=os.getenv("CRMB_SESSION_SALT", "crmb.session.v1"),
            session_max_age=int(os.getenv("CRMB_SESSION_MAX_AGE", "86400")),  # 24 hours
            cookie_name=os.getenv("CRMB_COOKIE_NAME", "crmb_session"),
            cookie_secure=_truthy(os.getenv("CRMB_COOKIE_SECURE", "false")),
        )

    def cookie_settings(self) -> dict:
        return {"httponly": True, "samesite": "lax", "secure": self.cookie_secure}
