"""
Pytest configuration and fixtures for devusers tests.

The fakes below stand in for the host capabilities so create/remove run
against a temporary directory instead of the real user database.
"""

import io
import shutil
import subprocess
import tempfile
from pathlib import Path

import pytest
from rich.console import Console

from devusers.formatters import StepReporter
from devusers.models import AccountRecord
from devusers.provisioner import AccountProvisioner
from devusers.settings import ProvisionerSettings
from devusers.system import (
    AccountStore,
    KeyGenerator,
    PackageInstaller,
    ProcessController,
)
from devusers.errors import StepFailure

PARENT_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIParentKeyMaterial john@workstation\n"


class FakeAccountStore(AccountStore):
    """In-memory user database whose homes live on the real filesystem."""

    def __init__(self):
        self.records = {}
        self.created = []
        self.deleted = []
        self.delete_stderr = []
        self.survives_delete = False
        self.next_uid = 1001

    def add(self, name, uid, home, shell="/bin/bash"):
        self.records[name] = AccountRecord(name=name, uid=uid, gid=uid, home=home, shell=shell)
        return self.records[name]

    def lookup(self, username):
        return self.records.get(username)

    def create(self, username, home, shell, groups_csv):
        self.created.append((username, home, shell, groups_csv))
        home.mkdir(parents=True)
        self.add(username, self.next_uid, home, shell)
        self.next_uid += 1

    def delete(self, username):
        self.deleted.append(username)
        if not self.survives_delete:
            record = self.records.pop(username)
            shutil.rmtree(record.home, ignore_errors=True)
        return list(self.delete_stderr)


class FakeKeyGenerator(KeyGenerator):
    def __init__(self):
        self.generated = []

    def generate(self, key_path, comment):
        self.generated.append((key_path, comment))
        key_path.write_text(f"PRIVATE KEY FOR {comment}\n")
        key_path.with_suffix(".pub").write_text(f"ssh-ed25519 AAAAFreshKey {comment}\n")


class FakeProcessController(ProcessController):
    def __init__(self, pids=None):
        self.pids = list(pids or [])
        self.terminated = []

    def list_processes(self, username):
        return list(self.pids)

    def terminate_all(self, username):
        self.terminated.append(username)
        self.pids = []


class FakePackageInstaller(PackageInstaller):
    def __init__(self, available=True, fail=False):
        self.is_available = available
        self.fail = fail
        self.installed = []

    def available(self):
        return self.is_available

    def install(self, package, username, prefix, home):
        if self.fail:
            raise StepFailure(f"Install {package}", "registry unreachable")
        self.installed.append((package, username, prefix, home))


class FakeRunner:
    """CommandRunner replacement returning canned results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.commands = []
        self.envs = []

    def run(self, command, env=None):
        self.commands.append(command)
        self.envs.append(env)
        returncode, stdout, stderr = self.results.pop(0) if self.results else (0, "", "")
        return subprocess.CompletedProcess(command, returncode, stdout, stderr)


class RecordingChown:
    def __init__(self):
        self.calls = []

    def __call__(self, path, uid, gid):
        self.calls.append((path, uid, gid))


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def settings(temp_dir):
    """Settings pointing every host path into temp_dir."""
    return ProvisionerSettings(
        home_root=temp_dir / "home",
        shared_profile=temp_dir / "etc" / "dotfiles" / "zprofile",
        kill_grace_seconds=0.5,
    )


@pytest.fixture
def accounts(temp_dir):
    """User database with root, a service account and parent user john."""
    store = FakeAccountStore()
    store.add("root", 0, temp_dir / "root")
    store.add("postgres", 114, temp_dir / "var" / "lib" / "postgresql")

    john_home = temp_dir / "home" / "john"
    (john_home / ".ssh").mkdir(parents=True)
    (john_home / ".ssh" / "id_ed25519.pub").write_text(PARENT_KEY)
    (john_home / ".ssh" / "id_ed25519").write_text("JOHN PRIVATE KEY\n")
    (john_home / ".config" / "zsh").mkdir(parents=True)
    (john_home / ".config" / "zsh" / ".zshrc").write_text("export EDITOR=nvim\n")
    store.add("john", 1000, john_home)
    return store


@pytest.fixture
def keygen():
    return FakeKeyGenerator()


@pytest.fixture
def processes():
    return FakeProcessController()


@pytest.fixture
def installer():
    return FakePackageInstaller()


@pytest.fixture
def chown():
    return RecordingChown()


@pytest.fixture
def output():
    """Captured stdout of the reporter."""
    return io.StringIO()


@pytest.fixture
def answers():
    """Answers handed to the confirmation prompt, in order."""
    return []


@pytest.fixture
def provisioner(settings, accounts, keygen, processes, installer, chown, output, answers):
    sleeps = []
    reporter = StepReporter(
        Console(file=output, width=200), Console(file=io.StringIO(), width=200)
    )
    provisioner = AccountProvisioner(
        settings=settings,
        accounts=accounts,
        keygen=keygen,
        processes=processes,
        installer=installer,
        reporter=reporter,
        confirm=lambda prompt: answers.pop(0),
        chown=chown,
        sleep=sleeps.append,
    )
    provisioner.sleeps = sleeps
    return provisioner
