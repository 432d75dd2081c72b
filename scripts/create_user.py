#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from crmb.auth.passwords import hash_password
from crmb.auth.users import ROLE_USER, UserRecord, UserStore
from crmb.config import Settings


def main() -> None:
    settings = Settings.from_env()
    store = UserStore(settings.users_path)
    users = store.load_all()

    username = input("Username: ").strip()
    if not username:
        raise SystemExit("Username is required")
    if any(u.username == username for u in users):
        raise SystemExit(f"User '{username}' already exists")
    role = (input("Role [user/admin]: ").strip().lower() or ROLE_USER)
    name = input(f"Display name [{username}]: ").strip() or username

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    users.append(
        UserRecord(
            id=max((u.id for u in users), default=0) + 1,
            username=username,
            password_hash=hash_password(pw1),
            role=role,
            name=name,
        )
    )
    store.save_all(users)
    print(f"OK -> {store.path}")


if __name__ == "__main__":
    main()
