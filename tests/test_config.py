import logging

from crmb.config import DEV_SECRET_KEY, Settings


def test_settings_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CRMB_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("SECRET_KEY", "s3cret")
    monkeypatch.setenv("CRMB_SESSION_MAX_AGE", "60")
    monkeypatch.setenv("CRMB_COOKIE_SECURE", "yes")
    monkeypatch.delenv("CRMB_USERS_PATH", raising=False)
    monkeypatch.delenv("CRMB_DOCUMENT_PATH", raising=False)

    s = Settings.from_env()
    assert s.users_path == (tmp_path / "users.json").resolve()
    assert s.document_path == (tmp_path / "data.json").resolve()
    assert s.secret_key == "s3cret"
    assert s.session_max_age == 60
    assert s.cookie_settings() == {"httponly": True, "samesite": "lax", "secure": True}


def test_default_session_ttl_is_24_hours(monkeypatch):
    monkeypatch.delenv("CRMB_SESSION_MAX_AGE", raising=False)
    assert Settings.from_env().session_max_age == 86400


def test_missing_secret_falls_back_with_warning(monkeypatch, caplog):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delenv("CRMB_SECRET_KEY", raising=False)
    with caplog.at_level(logging.WARNING):
        s = Settings.from_env()
    assert s.secret_key == DEV_SECRET_KEY
    assert "SECRET_KEY" in caplog.text
