# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from crmb.auth.passwords import hash_password, verify_password
from crmb.auth.session import SessionManager
from crmb.auth.users import ROLE_USER, Identity, UserRecord, UserStore, is_admin
from crmb.errors import Forbidden, Unauthorized, ValidationFailure
from crmb.infra.document_repo import DocumentStore

logger = logging.getLogger(__name__)

MSG_INVALID_CREDENTIALS = "Invalid username or password"
MSG_MISSING_FIELDS = "Missing required fields"
MSG_USER_NOT_FOUND = "User not found"
MSG_WRONG_PASSWORD = "Current password is incorrect"
MSG_USER_EXISTS = "User already exists"
MSG_SELF_DELETE = "You cannot delete your own account"
MSG_INVALID_USER_ID = "Invalid user id"
MSG_INVALID_DOCUMENT = "Invalid or empty document"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-02-01T10:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def public_user(u: UserRecord) -> Dict[str, Any]:
    return u.identity().to_dict()


class BakeryService:
    """Login, document access and user administration.

    The caller's session token or identity is always passed in explicitly;
    the service keeps no per-request state.
    """

    def __init__(self, *, users: UserStore, documents: DocumentStore, sessions: SessionManager) -> None:
        self.users = users
        self.documents = documents
        self.sessions = sessions

    def bootstrap(self) -> None:
        """Seed both stores if their files do not exist yet. Idempotent."""
        self.users.ensure_initialized()
        self.documents.ensure_initialized()

    # ------------------ Sessions ------------------

    def login(self, username: Optional[str], password: Optional[str]) -> Tuple[str, Identity]:
        u = self.users.authenticate(username or "", password or "")
        if not u:
            logger.warning("Failed login for %r", username)
            raise ValidationFailure(MSG_INVALID_CREDENTIALS)
        identity = u.identity()
        token = self.sessions.issue(identity)
        logger.info("User %s logged in", u.username)
        return token, identity

    def logout(self, token: Optional[str]) -> None:
        if not token:
            return
        identity = self.sessions.resolve(token)
        self.sessions.revoke(token)
        if identity:
            logger.info("User %s logged out", identity.username)

    def whoami(self, token: Optional[str]) -> Identity:
        identity = self.sessions.resolve(token or "")
        if identity is None:
            raise Unauthorized()
        return identity

    def change_password(self, identity: Identity, old_password: Optional[str], new_password: Optional[str]) -> None:
        if not old_password or not new_password:
            raise ValidationFailure(MSG_MISSING_FIELDS)
        users = self.users.load_all()
        idx = next((i for i, u in enumerate(users) if u.id == identity.id), -1)
        if idx == -1:
            raise ValidationFailure(MSG_USER_NOT_FOUND)
        current = users[idx]
        if not verify_password(current.password_hash, old_password):
            raise ValidationFailure(MSG_WRONG_PASSWORD)
        users[idx] = UserRecord(
            id=current.id,
            username=current.username,
            password_hash=hash_password(new_password),
            role=current.role,
            name=current.name,
        )
        self.users.save_all(users)
        logger.info("User %s changed password", current.username)

    # ------------------ Business document ------------------

    def get_document(self) -> Any:
        return self.documents.load()

    def replace_document(self, doc: Any) -> str:
        try:
            self.documents.save(doc)
        except (TypeError, ValueError) as e:
            # Nothing is written when the value cannot be encoded.
            raise ValidationFailure(MSG_INVALID_DOCUMENT) from e
        return utc_timestamp()

    # ------------------ User administration ------------------

    @staticmethod
    def _require_admin(identity: Identity) -> None:
        if not is_admin(identity):
            raise Forbidden()

    def list_users(self, identity: Identity) -> List[Dict[str, Any]]:
        self._require_admin(identity)
        return [public_user(u) for u in self.users.load_all()]

    def create_user(
        self,
        identity: Identity,
        *,
        username: Optional[str],
        password: Optional[str],
        role: Optional[str] = None,
        name: Optional[str] = None,
    ) -> UserRecord:
        self._require_admin(identity)
        if not username or not password:
            raise ValidationFailure(MSG_MISSING_FIELDS)
        users = self.users.load_all()
        if any(u.username == username for u in users):
            raise ValidationFailure(MSG_USER_EXISTS)
        record = UserRecord(
            id=max((u.id for u in users), default=0) + 1,
            username=username,
            password_hash=hash_password(password),
            role=role or ROLE_USER,
            name=name or username,
        )
        users.append(record)
        self.users.save_all(users)
        logger.info("User %s created %s (role=%s)", identity.username, record.username, record.role)
        return record

    def delete_user(self, identity: Identity, user_id: int) -> None:
        self._require_admin(identity)
        if user_id == identity.id:
            raise ValidationFailure(MSG_SELF_DELETE)
        users = self.users.load_all()
        remaining = [u for u in users if u.id != user_id]
        if len(remaining) != len(users):
            self.users.save_all(remaining)
            logger.info("User %s deleted user id %s", identity.username, user_id)
