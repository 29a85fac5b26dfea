"""Tests for AccountProvisioner.remove_user."""

import pytest

from devusers.errors import (
    ConfirmationMismatch,
    InvalidUsername,
    NotFound,
    Protected,
    RemovalFailed,
)
from devusers.models import UserSpec


@pytest.fixture
def dev_alice(provisioner, settings):
    """An account created through the provisioner."""
    record = provisioner.create_user(UserSpec(username="dev-alice", parent_username="john"))
    assert (settings.home_root / "dev-alice").is_dir()
    return record


def test_force_remove_end_to_end(provisioner, accounts, dev_alice, answers):
    """Test forced removal deletes the account and its home without asking."""
    provisioner.remove_user("dev-alice", force=True)

    assert accounts.lookup("dev-alice") is None
    assert not dev_alice.home.exists()
    assert accounts.deleted == ["dev-alice"]


def test_confirmed_remove(provisioner, accounts, dev_alice, answers):
    answers.append("dev-alice")
    provisioner.remove_user("dev-alice")

    assert answers == []
    assert accounts.lookup("dev-alice") is None


@pytest.mark.parametrize("answer", ["", "dev-alic", "DEV-ALICE", "john", " dev-alice"])
def test_wrong_confirmation_changes_nothing(provisioner, accounts, processes, dev_alice, answers, answer):
    """Test a mismatch aborts before any process or account is touched."""
    processes.pids = [4242]
    answers.append(answer)

    with pytest.raises(ConfirmationMismatch):
        provisioner.remove_user("dev-alice")

    assert accounts.lookup("dev-alice") is not None
    assert dev_alice.home.exists()
    assert accounts.deleted == []
    assert processes.terminated == []


@pytest.mark.parametrize("force", [True, False])
def test_reserved_name_is_protected(provisioner, accounts, answers, force):
    """Test root cannot be removed, forced or not, and no prompt is shown."""
    with pytest.raises(Protected):
        provisioner.remove_user("root", force=force)
    assert accounts.deleted == []


@pytest.mark.parametrize("force", [True, False])
def test_low_uid_account_is_protected(provisioner, accounts, force):
    with pytest.raises(Protected):
        provisioner.remove_user("postgres", force=force)
    assert accounts.lookup("postgres") is not None


def test_unknown_user(provisioner, accounts):
    with pytest.raises(NotFound):
        provisioner.remove_user("dev-ghost", force=True)
    assert accounts.deleted == []


def test_invalid_username(provisioner, accounts):
    with pytest.raises(InvalidUsername):
        provisioner.remove_user("../etc", force=True)
    assert accounts.deleted == []


def test_running_processes_are_killed_first(provisioner, processes, settings, dev_alice, output):
    processes.pids = [101, 102]
    provisioner.remove_user("dev-alice", force=True)

    assert processes.terminated == ["dev-alice"]
    assert provisioner.sleeps == [settings.kill_grace_seconds]
    assert "Terminated 2 process(es)" in output.getvalue()


def test_no_pause_without_processes(provisioner, processes, dev_alice):
    provisioner.remove_user("dev-alice", force=True)

    assert processes.terminated == []
    assert provisioner.sleeps == []


def test_leftover_warnings_are_reported(provisioner, accounts, dev_alice, output):
    accounts.delete_stderr = ["userdel: dev-alice home directory is a mount point"]
    provisioner.remove_user("dev-alice", force=True)

    assert "mount point" in output.getvalue()


def test_account_still_present_after_delete(provisioner, accounts, dev_alice):
    """Test the post-delete lookup catches a removal that did not stick."""
    accounts.survives_delete = True

    with pytest.raises(RemovalFailed) as exc_info:
        provisioner.remove_user("dev-alice", force=True)
    assert exc_info.value.step == "Verify removal"


def test_remove_then_create_again(provisioner, accounts, dev_alice):
    provisioner.remove_user("dev-alice", force=True)
    record = provisioner.create_user(UserSpec(username="dev-alice", parent_username="john"))

    assert accounts.lookup("dev-alice") == record


@pytest.mark.parametrize("force", [True, False])
def test_reserved_name_without_account_is_protected(provisioner, accounts, settings, force):
    """Test a reserved name missing from this host is Protected, not NotFound."""
    assert "admin" in settings.protected_users
    assert accounts.lookup("admin") is None

    with pytest.raises(Protected):
        provisioner.remove_user("admin", force=force)
    assert accounts.deleted == []
