# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from crmb.auth.session import CookieSigner, SessionManager
from crmb.auth.users import Identity, UserStore
from crmb.config import Settings
from crmb.errors import Forbidden, Unauthorized, ValidationFailure
from crmb.infra.document_repo import DocumentStore
from crmb.infra.json_store import loads_strict
from crmb.permissions import current_user_optional, require_admin, require_user, session_token
from crmb.services.bakery_service import MSG_INVALID_DOCUMENT, MSG_INVALID_USER_ID, BakeryService

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

_NO_BODY = object()


async def _read_body(request: Request, *, allow_form: bool = True) -> Any:
    """Parse a JSON or form body. Returns _NO_BODY when empty or unparseable.

    NaN/Infinity are refused so a stored document can always be rendered back.
    Form bodies keep plain string fields only; uploaded files are ignored.
    """
    ctype = request.headers.get("content-type", "")
    if ctype.startswith("application/x-www-form-urlencoded") or ctype.startswith("multipart/form-data"):
        if not allow_form:
            return _NO_BODY
        form = await request.form()
        return {str(k): v for k, v in form.items() if isinstance(v, str)}
    raw = await request.body()
    if not raw.strip():
        return _NO_BODY
    try:
        return loads_strict(raw)
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError are both ValueError.
        return _NO_BODY


async def _read_fields(request: Request) -> dict:
    body = await _read_body(request)
    return body if isinstance(body, dict) else {}


def _field(body: dict, key: str) -> Optional[str]:
    v = body.get(key)
    if v is None:
        return None
    return v if isinstance(v, str) else str(v)


def _service(request: Request) -> BakeryService:
    return request.app.state.service


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI()
    app.state.settings = settings
    app.state.sessions = SessionManager(max_age=settings.session_max_age)
    app.state.signer = CookieSigner(
        settings.secret_key,
        salt=settings.session_salt,
        max_age=settings.session_max_age,
    )
    app.state.service = BakeryService(
        users=UserStore(settings.users_path),
        documents=DocumentStore(settings.document_path),
        sessions=app.state.sessions,
    )
    app.state.service.bootstrap()

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        request.state.user = current_user_optional(request)
        return await call_next(request)

    @app.exception_handler(Unauthorized)
    async def _unauthorized(request: Request, exc: Unauthorized):
        if request.url.path.startswith("/api/"):
            return JSONResponse({"error": exc.message}, status_code=401)
        return RedirectResponse(url="/login", status_code=303)

    @app.exception_handler(Forbidden)
    async def _forbidden(request: Request, exc: Forbidden):
        return JSONResponse({"error": exc.message}, status_code=403)

    @app.exception_handler(ValidationFailure)
    async def _validation_failure(request: Request, exc: ValidationFailure):
        return JSONResponse({"ok": False, "error": exc.message})

    static_dir = BASE_DIR / "static"
    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    # ------------------ Auth routes ------------------

    @app.get("/login", response_class=HTMLResponse)
    def login_get(request: Request):
        if getattr(request.state, "user", None):
            return RedirectResponse(url="/", status_code=303)
        return templates.TemplateResponse(request, "login.html", {})

    @app.post("/api/login")
    async def api_login(request: Request):
        body = await _read_fields(request)
        token, identity = _service(request).login(_field(body, "username"), _field(body, "password"))
        resp = JSONResponse({"ok": True, "user": identity.to_dict()})
        resp.set_cookie(
            settings.cookie_name,
            request.app.state.signer.sign(token),
            max_age=settings.session_max_age,
            **settings.cookie_settings(),
        )
        return resp

    @app.post("/api/logout")
    def api_logout(request: Request):
        _service(request).logout(session_token(request))
        resp = JSONResponse({"ok": True})
        resp.delete_cookie(settings.cookie_name)
        return resp

    @app.get("/api/me")
    def api_me(request: Request):
        return _service(request).whoami(session_token(request)).to_dict()

    @app.post("/api/change-password")
    async def api_change_password(request: Request, user: Identity = Depends(require_user)):
        body = await _read_fields(request)
        _service(request).change_password(user, _field(body, "oldPassword"), _field(body, "newPassword"))
        return {"ok": True}

    # ------------------ Business document ------------------

    @app.get("/api/data")
    def api_get_data(request: Request, user: Identity = Depends(require_user)):
        return JSONResponse(_service(request).get_document())

    @app.post("/api/data")
    async def api_replace_data(request: Request, user: Identity = Depends(require_user)):
        doc = await _read_body(request, allow_form=False)
        if doc is _NO_BODY:
            raise ValidationFailure(MSG_INVALID_DOCUMENT)
        saved_at = _service(request).replace_document(doc)
        return {"ok": True, "savedAt": saved_at}

    # ------------------ Users (admin only) ------------------

    @app.get("/api/users")
    def api_list_users(request: Request, user: Identity = Depends(require_admin)):
        return _service(request).list_users(user)

    @app.post("/api/users")
    async def api_create_user(request: Request, user: Identity = Depends(require_admin)):
        body = await _read_fields(request)
        _service(request).create_user(
            user,
            username=_field(body, "username"),
            password=_field(body, "password"),
            role=_field(body, "role"),
            name=_field(body, "name"),
        )
        return {"ok": True}

    @app.delete("/api/users/{user_id}")
    def api_delete_user(request: Request, user_id: str, user: Identity = Depends(require_admin)):
        try:
            target = int(user_id)
        except ValueError:
            raise ValidationFailure(MSG_INVALID_USER_ID)
        _service(request).delete_user(user, target)
        return {"ok": True}

    # ------------------ App shell ------------------

    @app.get("/{full_path:path}", response_class=HTMLResponse)
    def app_shell(request: Request, full_path: str, user: Identity = Depends(require_user)):
        return templates.TemplateResponse(request, "index.html", {"current_user": user})

    return app
