"""Tests for the approved user allow-list."""

from __future__ import annotations

import pytest

from tallman_db.db import CollectionStore
from tallman_db.errors import ProtectedResourceError, UniqueKeyViolation
from tallman_db.repositories import APPROVED_USERS, ApprovedUserRepository, User, UserRole

BOOTSTRAP_ADMIN = "bootstrap-admin"


@pytest.fixture
def repo(engine) -> ApprovedUserRepository:
    return ApprovedUserRepository(
        CollectionStore(engine, APPROVED_USERS, User),
        bootstrap_admin=BOOTSTRAP_ADMIN,
    )


class TestBootstrapAdmin:
    def test_seeded_on_fresh_store(self, repo) -> None:
        assert repo.get(BOOTSTRAP_ADMIN) == User(username=BOOTSTRAP_ADMIN, role=UserRole.ADMIN)

    def test_cannot_be_deleted(self, repo) -> None:
        repo.upsert(User(username="alice", role=UserRole.USER))
        before = repo.list_all()
        with pytest.raises(ProtectedResourceError) as info:
            repo.delete(BOOTSTRAP_ADMIN)
        assert info.value.key == BOOTSTRAP_ADMIN
        assert repo.list_all() == before
        assert User(username=BOOTSTRAP_ADMIN, role=UserRole.ADMIN) in before

    def test_role_may_change(self, repo) -> None:
        repo.upsert(User(username=BOOTSTRAP_ADMIN, role=UserRole.USER))
        assert repo.get(BOOTSTRAP_ADMIN).role is UserRole.USER

    def test_ensure_bootstrap_is_noop_when_present(self, repo) -> None:
        assert repo.ensure_bootstrap() is False

    def test_ensure_bootstrap_for_renamed_admin(self, engine) -> None:
        renamed = ApprovedUserRepository(
            CollectionStore(engine, APPROVED_USERS, User),
            bootstrap_admin="ops-lead",
        )
        assert renamed.ensure_bootstrap() is True
        assert renamed.get("ops-lead").role is UserRole.ADMIN
        with pytest.raises(ProtectedResourceError):
            renamed.delete("ops-lead")


class TestAllowList:
    def test_other_users_can_be_deleted(self, repo) -> None:
        repo.upsert(User(username="alice", role=UserRole.USER))
        repo.delete("alice")
        assert repo.get("alice") is None

    def test_list_all_sorted(self, repo) -> None:
        repo.upsert(User(username="zoe", role=UserRole.USER))
        repo.upsert(User(username="alice", role=UserRole.HOLD))
        assert [u.username for u in repo.list_all()] == ["alice", BOOTSTRAP_ADMIN, "zoe"]

    def test_request_access_puts_user_on_hold(self, repo) -> None:
        user = repo.request_access("new.rep")
        assert user.role is UserRole.HOLD
        assert repo.get("new.rep") == user

    def test_request_access_twice(self, repo) -> None:
        repo.upsert(User(username="bob", role=UserRole.ADMIN))
        with pytest.raises(UniqueKeyViolation):
            repo.request_access("bob")
        assert repo.get("bob").role is UserRole.ADMIN
