"""
Host capabilities used by the provisioner.

The provisioner never shells out directly. It talks to four small interfaces:
- AccountStore: user-database lookups, account creation and deletion
- KeyGenerator: SSH keypair generation
- ProcessController: listing and killing a user's processes
- PackageInstaller: the optional developer-tool install

The Host* implementations below run the usual Linux utilities through a
CommandRunner, so tests can swap either the whole capability or only the
runner.
"""

import logging
import os
import pwd
import re
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .errors import RemovalFailed, StepFailure
from .models import AccountRecord

logger = logging.getLogger(__name__)

# userdel warns about a missing mail spool on most hosts; it is harmless
MAIL_SPOOL_WARNING = re.compile(r"mail spool \(.*\) not found")


class CommandRunner:
    """Runs external commands and captures their output."""

    def run(
        self, command: List[str], env: Optional[Dict[str, str]] = None
    ) -> subprocess.CompletedProcess:
        """Run a command to completion.

        Args:
            command: Executable and arguments
            env: Extra environment variables layered over os.environ

        Returns:
            CompletedProcess with text stdout/stderr

        Raises:
            StepFailure: If the executable cannot be started
        """
        logger.debug(f"Running: {' '.join(command)}")
        execution_env = None
        if env:
            execution_env = os.environ.copy()
            execution_env.update(env)
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                env=execution_env,
            )
        except OSError as e:
            raise StepFailure(command[0], str(e)) from e


def _error_detail(process: subprocess.CompletedProcess) -> str:
    detail = process.stderr.strip() if process.stderr else ""
    return detail or f"exit code {process.returncode}"


class AccountStore(ABC):
    """Access to the OS user database."""

    @abstractmethod
    def lookup(self, username: str) -> Optional[AccountRecord]:
        """Return the live record for username, or None if it does not resolve."""

    @abstractmethod
    def create(self, username: str, home: Path, shell: str, groups_csv: str) -> None:
        """Create the account and its home directory."""

    @abstractmethod
    def delete(self, username: str) -> List[str]:
        """Delete the account and its home directory.

        Returns:
            Leftover warning lines reported by the deletion tool
        """


class KeyGenerator(ABC):
    @abstractmethod
    def generate(self, key_path: Path, comment: str) -> None:
        """Write an ed25519 keypair with an empty passphrase to key_path(.pub)."""


class ProcessController(ABC):
    @abstractmethod
    def list_processes(self, username: str) -> List[int]:
        """PIDs of processes owned by username."""

    @abstractmethod
    def terminate_all(self, username: str) -> None:
        """Kill every process owned by username."""


class PackageInstaller(ABC):
    @abstractmethod
    def available(self) -> bool:
        """Whether the package manager can be run on this host."""

    @abstractmethod
    def install(self, package: str, username: str, prefix: Path, home: Path) -> None:
        """Install package under prefix, running as username."""


class HostAccountStore(AccountStore):
    """AccountStore backed by pwd, useradd and userdel."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def lookup(self, username: str) -> Optional[AccountRecord]:
        try:
            entry = pwd.getpwnam(username)
        except KeyError:
            return None
        return AccountRecord(
            name=entry.pw_name,
            uid=entry.pw_uid,
            gid=entry.pw_gid,
            home=Path(entry.pw_dir),
            shell=entry.pw_shell,
        )

    def create(self, username: str, home: Path, shell: str, groups_csv: str) -> None:
        command = ["useradd", "--create-home", "--home-dir", str(home), "--shell", shell]
        if groups_csv:
            command.extend(["--groups", groups_csv])
        command.append(username)

        process = self.runner.run(command)
        if process.returncode != 0:
            raise StepFailure("Create account", _error_detail(process))

    def delete(self, username: str) -> List[str]:
        process = self.runner.run(["userdel", "--remove", username])
        warnings = [
            line.strip()
            for line in (process.stderr or "").splitlines()
            if line.strip() and not MAIL_SPOOL_WARNING.search(line)
        ]
        if process.returncode != 0:
            detail = "; ".join(warnings) or f"exit code {process.returncode}"
            raise RemovalFailed("Delete account", detail)
        return warnings


class SshKeygen(KeyGenerator):
    """KeyGenerator backed by ssh-keygen."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def generate(self, key_path: Path, comment: str) -> None:
        process = self.runner.run(
            ["ssh-keygen", "-q", "-t", "ed25519", "-N", "", "-C", comment, "-f", str(key_path)]
        )
        if process.returncode != 0:
            raise StepFailure("Generate SSH key", _error_detail(process))


class HostProcessController(ProcessController):
    """ProcessController backed by pgrep and pkill."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def list_processes(self, username: str) -> List[int]:
        process = self.runner.run(["pgrep", "-u", username])
        # pgrep exits 1 when nothing matched
        if process.returncode == 1:
            return []
        if process.returncode != 0:
            raise StepFailure("List processes", _error_detail(process))
        return [int(pid) for pid in process.stdout.split()]

    def terminate_all(self, username: str) -> None:
        process = self.runner.run(["pkill", "-KILL", "-u", username])
        if process.returncode not in (0, 1):
            raise StepFailure("Terminate processes", _error_detail(process))


class HostPackageInstaller(PackageInstaller):
    """PackageInstaller for npm-style managers that accept --global --prefix.

    The manager runs through runuser so package scripts never execute as root.
    """

    def __init__(
        self,
        manager: str,
        runner: Optional[CommandRunner] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.manager = manager
        self.runner = runner or CommandRunner()
        self.which = which

    def available(self) -> bool:
        return self.which(self.manager) is not None and self.which("runuser") is not None

    def install(self, package: str, username: str, prefix: Path, home: Path) -> None:
        process = self.runner.run(
            [
                "runuser",
                "-u",
                username,
                "--",
                self.manager,
                "install",
                "--global",
                "--prefix",
                str(prefix),
                package,
            ],
            env={"HOME": str(home)},
        )
        if process.returncode != 0:
            raise StepFailure(f"Install {package}", _error_detail(process))


def chown_tree(
    root: Path, uid: int, gid: int, chown: Callable[[str, int, int], None] = os.lchown
) -> None:
    """Recursively hand root and everything under it to uid:gid.

    Symlinks are re-owned themselves and never followed.

    Raises:
        OSError: If a directory cannot be listed or a path cannot be re-owned
    """

    def _raise(error: OSError) -> None:
        raise error

    chown(str(root), uid, gid)
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        for name in dirnames + filenames:
            chown(os.path.join(dirpath, name), uid, gid)
