# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy shared by the service layer and the HTTP handlers."""

from __future__ import annotations


class CrmbError(Exception):
    """Base class for errors that resolve to an HTTP response."""


class Unauthorized(CrmbError):
    """No session, or the session expired/was revoked."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)
        self.message = message


class Forbidden(CrmbError):
    """Valid session without the required role."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)
        self.message = message


class ValidationFailure(CrmbError):
    """Reported in-band as {"ok": false, "error": message} with HTTP 200."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
