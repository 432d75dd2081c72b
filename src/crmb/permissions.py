# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional

from fastapi import Request

from crmb.auth.users import Identity, is_admin
from crmb.errors import Forbidden, Unauthorized


def session_token(request: Request) -> Optional[str]:
    """Unsigned session token carried by the request cookie, if any."""
    state = request.app.state
    raw = request.cookies.get(state.settings.cookie_name, "")
    return state.signer.unsign(raw)


def load_user_from_request(request: Request) -> Optional[Identity]:
    token = session_token(request)
    if not token:
        return None
    return request.app.state.sessions.resolve(token)


def current_user_optional(request: Request) -> Optional[Identity]:
    u = getattr(request.state, "user", None)
    if u is not None:
        return u
    return load_user_from_request(request)


def require_user(request: Request) -> Identity:
    u = current_user_optional(request)
    if u:
        return u
    raise Unauthorized()


def require_admin(request: Request) -> Identity:
    u = require_user(request)
    if not is_admin(u):
        raise Forbidden()
    return u
