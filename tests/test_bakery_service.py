import pytest

from crmb.auth.session import SessionManager
from crmb.auth.users import UserStore
from crmb.errors import Forbidden, Unauthorized, ValidationFailure
from crmb.infra.document_repo import DocumentStore
from crmb.services import bakery_service as bs
from crmb.services.bakery_service import BakeryService


@pytest.fixture()
def service(tmp_path) -> BakeryService:
    svc = BakeryService(
        users=UserStore(tmp_path / "users.json"),
        documents=DocumentStore(tmp_path / "data.json"),
        sessions=SessionManager(),
    )
    svc.bootstrap()
    return svc


@pytest.fixture()
def admin(service):
    _, identity = service.login("admin", "admin123")
    return identity


@pytest.fixture()
def regular(service):
    _, identity = service.login("user1", "user123")
    return identity


def test_login_issues_session(service):
    token, identity = service.login("admin", "admin123")
    assert identity.username == "admin"
    assert identity.role == "admin"
    assert service.whoami(token) == identity
    assert "password" not in identity.to_dict()


@pytest.mark.parametrize("username,password", [("admin", "nope"), ("ghost", "admin123"), (None, None)])
def test_login_failure_is_generic(service, username, password):
    with pytest.raises(ValidationFailure) as exc:
        service.login(username, password)
    assert exc.value.message == bs.MSG_INVALID_CREDENTIALS


def test_logout_revokes(service):
    token, _ = service.login("admin", "admin123")
    service.logout(token)
    with pytest.raises(Unauthorized):
        service.whoami(token)
    service.logout(None)


def test_change_password(service, regular):
    service.change_password(regular, "user123", "new-pass")
    with pytest.raises(ValidationFailure):
        service.login("user1", "user123")
    _, identity = service.login("user1", "new-pass")
    assert identity.id == regular.id


def test_change_password_wrong_old(service, regular):
    with pytest.raises(ValidationFailure) as exc:
        service.change_password(regular, "bad", "new-pass")
    assert exc.value.message == bs.MSG_WRONG_PASSWORD
    service.login("user1", "user123")


def test_change_password_user_vanished(service, admin, regular):
    service.delete_user(admin, regular.id)
    with pytest.raises(ValidationFailure) as exc:
        service.change_password(regular, "user123", "new-pass")
    assert exc.value.message == bs.MSG_USER_NOT_FOUND


def test_document_round_trip_without_merge(service):
    assert "employees" in service.get_document()
    saved_at = service.replace_document({"a": 1})
    assert saved_at.endswith("Z")
    assert service.get_document() == {"a": 1}


def test_created_user_can_login(service, admin):
    record = service.create_user(admin, username="baker", password="flour", name="Baker")
    assert record.role == "user"
    assert record.id == 3
    _, identity = service.login("baker", "flour")
    assert identity.name == "Baker"
    with pytest.raises(ValidationFailure):
        service.login("baker", "flour2")


def test_create_user_defaults(service, admin):
    record = service.create_user(admin, username="cashier", password="x", role="", name=None)
    assert record.role == "user"
    assert record.name == "cashier"


def test_create_user_duplicate_leaves_store_unchanged(service, admin):
    before = service.list_users(admin)
    with pytest.raises(ValidationFailure) as exc:
        service.create_user(admin, username="admin", password="x")
    assert exc.value.message == bs.MSG_USER_EXISTS
    assert service.list_users(admin) == before


@pytest.mark.parametrize("username,password", [("", "x"), ("someone", ""), (None, None)])
def test_create_user_missing_fields(service, admin, username, password):
    with pytest.raises(ValidationFailure) as exc:
        service.create_user(admin, username=username, password=password)
    assert exc.value.message == bs.MSG_MISSING_FIELDS


def test_ids_stay_unique_after_delete(service, admin):
    a = service.create_user(admin, username="a", password="x")
    service.delete_user(admin, a.id)
    b = service.create_user(admin, username="b", password="x")
    ids = [u["id"] for u in service.list_users(admin)]
    assert len(ids) == len(set(ids))
    assert b.username in {u["username"] for u in service.list_users(admin)}


def test_self_delete_is_rejected(service, admin):
    service.create_user(admin, username="other", password="x")
    with pytest.raises(ValidationFailure) as exc:
        service.delete_user(admin, admin.id)
    assert exc.value.message == bs.MSG_SELF_DELETE
    assert any(u["id"] == admin.id for u in service.list_users(admin))


def test_delete_user(service, admin, regular):
    service.delete_user(admin, regular.id)
    assert [u["username"] for u in service.list_users(admin)] == ["admin"]
    # Unknown ids are a no-op.
    service.delete_user(admin, 999)


def test_non_admin_is_forbidden(service, regular):
    with pytest.raises(Forbidden):
        service.list_users(regular)
    with pytest.raises(Forbidden):
        service.create_user(regular, username="x", password="y")
    with pytest.raises(Forbidden):
        service.delete_user(regular, 1)
    assert service.users.find_by_username("x") is None
    assert service.users.find_by_id(1) is not None


def test_replace_document_refuses_non_finite_values(service):
    service.replace_document({"a": 1})
    with pytest.raises(ValidationFailure) as exc:
        service.replace_document({"a": float("inf")})
    assert exc.value.message == bs.MSG_INVALID_DOCUMENT
    assert service.get_document() == {"a": 1}
