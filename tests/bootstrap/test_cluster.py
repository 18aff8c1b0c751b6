import pytest

from rsinit.bootstrap.cluster import (
    AdminOutcome,
    ClusterBootstrapper,
    OutcomeKind,
    is_duplicate_user_error,
)
from rsinit.errors import AdminCommandError, AdminError

from fakes import FakeAdmin


def test_initiate_applied_then_already_satisfied(fake_admin):
    cb = ClusterBootstrapper(fake_admin)

    first = cb.initiate_replica_set("localhost:27017")
    second = cb.initiate_replica_set("localhost:27017")

    assert first.kind is OutcomeKind.APPLIED
    assert second.kind is OutcomeKind.ALREADY_SATISFIED
    assert second.ok
    initiates = [c for c in fake_admin.calls if c[0] == "initiate"]
    assert initiates == [("initiate", "rs0", [{"_id": 0, "host": "localhost:27017"}])]


def test_initiate_uses_configured_set_name():
    admin = FakeAdmin()
    ClusterBootstrapper(admin, replica_set_name="data").initiate_replica_set("db:27017")
    assert admin.set_name == "data"
    assert admin.members == [{"_id": 0, "host": "db:27017"}]


def test_initiate_command_failure_is_failed(fake_admin):
    fake_admin.initiate_error = AdminCommandError(
        "No host described in new configuration", code=93, code_name="InvalidReplicaSetConfig"
    )
    outcome = ClusterBootstrapper(fake_admin).initiate_replica_set("nowhere:1")

    assert outcome.kind is OutcomeKind.FAILED
    assert outcome.cause is fake_admin.initiate_error
    with pytest.raises(AdminError) as ei:
        outcome.raise_for_failure("initiate")
    assert ei.value.phase == "initiate"
    assert ei.value.__cause__ is fake_admin.initiate_error


def test_create_root_user_applied_then_already_satisfied(fake_admin):
    cb = ClusterBootstrapper(fake_admin)

    first = cb.create_root_user("root", "secret123")
    second = cb.create_root_user("root", "secret123")

    assert first.kind is OutcomeKind.APPLIED
    assert second.kind is OutcomeKind.ALREADY_SATISFIED
    assert fake_admin.users["root"]["roles"] == [{"role": "root", "db": "admin"}]


@pytest.mark.parametrize(
    "err",
    [
        AdminCommandError("E11000 duplicate key error", code=11000),
        AdminCommandError("duplicate", code=None, code_name="DuplicateKey"),
        AdminCommandError('User "root@admin" ALREADY EXISTS', code=51003),
    ],
)
def test_duplicate_shapes_are_already_satisfied(fake_admin, err):
    fake_admin.create_user_error = err

    outcome = ClusterBootstrapper(fake_admin).create_root_user("root", "secret123")

    assert is_duplicate_user_error(err)
    assert outcome.kind is OutcomeKind.ALREADY_SATISFIED


def test_unrecognized_create_user_error_is_failed(fake_admin):
    fake_admin.create_user_error = AdminCommandError(
        "command createUser requires authentication", code=13, code_name="Unauthorized"
    )

    outcome = ClusterBootstrapper(fake_admin).create_root_user("root", "secret123")

    assert outcome.kind is OutcomeKind.FAILED
    assert not is_duplicate_user_error(fake_admin.create_user_error)
    with pytest.raises(AdminError):
        outcome.raise_for_failure("root-user")


def test_raise_for_failure_passes_successes_through():
    out = AdminOutcome.applied("ok")
    assert out.raise_for_failure("x") is out
    assert AdminOutcome.already_satisfied().raise_for_failure("x").ok
