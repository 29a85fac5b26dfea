"""
devusers Provisioner - create and remove development accounts.

Create Pipeline: validate → resolve parent → create account → SSH trust →
dotfiles → developer tool → ownership
Remove Pipeline: validate → guard → confirm → kill processes → delete → verify

Steps are not transactional: a failure partway through a create leaves a
half-configured account that must be removed before the name can be reused.
"""

import logging
import os
import shutil
import socket
import time
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from rich.prompt import Prompt

from .errors import (
    AlreadyExists,
    ConfigCopyFailed,
    ConfirmationMismatch,
    NoParentKey,
    NotFound,
    ParentNotFound,
    Protected,
    RemovalFailed,
    StepFailure,
)
from .formatters import StepReporter
from .models import AccountRecord, ParentContext, UserSpec
from .settings import ProvisionerSettings
from .system import (
    AccountStore,
    HostAccountStore,
    HostPackageInstaller,
    HostProcessController,
    KeyGenerator,
    PackageInstaller,
    ProcessController,
    SshKeygen,
    chown_tree,
)
from .validation import is_protected_user, validate_username

logger = logging.getLogger(__name__)


@contextmanager
def _step(name: str, error_class=StepFailure):
    """Turn OS errors raised inside the block into a StepFailure for name."""
    try:
        yield
    except OSError as e:
        raise error_class(name, str(e)) from e


def _ask(prompt: str) -> str:
    return Prompt.ask(prompt)


class AccountProvisioner:
    """Creates and removes development accounts on this host."""

    def __init__(
        self,
        settings: ProvisionerSettings,
        accounts: AccountStore,
        keygen: KeyGenerator,
        processes: ProcessController,
        installer: PackageInstaller,
        reporter: Optional[StepReporter] = None,
        confirm: Optional[Callable[[str], str]] = None,
        chown: Callable[[str, int, int], None] = os.lchown,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize AccountProvisioner.

        Args:
            settings: Immutable configuration
            accounts: User-database access
            keygen: SSH keypair generator
            processes: Lists and kills a user's processes
            installer: Package manager for the developer tool
            reporter: Progress output (defaults to a Rich console reporter)
            confirm: Asks the operator a question and returns the answer
            chown: Ownership change for a single path, symlinks not followed
            sleep: Pause used after killing processes
        """
        self.settings = settings
        self.accounts = accounts
        self.keygen = keygen
        self.processes = processes
        self.installer = installer
        self.reporter = reporter or StepReporter()
        self.confirm = confirm or _ask
        self.chown = chown
        self.sleep = sleep

    @classmethod
    def for_host(
        cls,
        settings: ProvisionerSettings,
        reporter: Optional[StepReporter] = None,
        confirm: Optional[Callable[[str], str]] = None,
    ) -> "AccountProvisioner":
        """Build a provisioner wired to the real user database and utilities."""
        return cls(
            settings=settings,
            accounts=HostAccountStore(),
            keygen=SshKeygen(),
            processes=HostProcessController(),
            installer=HostPackageInstaller(settings.dev_tool_manager),
            reporter=reporter,
            confirm=confirm,
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_user(self, spec: UserSpec) -> AccountRecord:
        """
        Create spec.username, seeded from spec.parent_username.

        Args:
            spec: Requested account

        Returns:
            The user-database record of the new account

        Raises:
            InvalidUsername, AlreadyExists, ParentNotFound, NoParentKey,
            StepFailure, ConfigCopyFailed
        """
        username = spec.username
        validate_username(username)

        if self.accounts.lookup(username) is not None:
            raise AlreadyExists(username)

        parent_record = self.accounts.lookup(spec.parent_username)
        if parent_record is None:
            raise ParentNotFound(spec.parent_username)

        parent = self.resolve_parent(parent_record)
        logger.info(f"Using parent key {parent.ssh_public_key_path}")

        self.reporter.header(f"Creating user {username} (parent: {spec.parent_username})")

        home = self.settings.home_root / username
        shell = spec.shell or self.settings.default_shell
        self.accounts.create(username, home, shell, spec.groups_csv())
        record = self.accounts.lookup(username)
        if record is None:
            raise StepFailure("Create account", f"{username} does not resolve after useradd")
        self.reporter.step(f"Created account {username} (home {home}, shell {shell})")

        self._bootstrap_ssh(username, home, parent)
        self._create_baseline(home, parent)
        self._link_shared_profile(home)
        self._install_dev_tool(record)

        with _step("Set ownership"):
            chown_tree(home, record.uid, record.gid, chown=self.chown)
        self.reporter.step(f"Set ownership of {home} to {username}")

        self.reporter.success(f"User {username} created")
        return record

    def resolve_parent(self, parent: AccountRecord) -> ParentContext:
        """Find the parent's home and first public key.

        Raises:
            NoParentKey: If ~/.ssh holds no regular id_*.pub file
        """
        ssh_dir = parent.home / ".ssh"
        # The parent controls this directory; only plain files are trusted
        key = next(
            (
                match
                for match in ssh_dir.glob("id_*.pub")
                if not match.is_symlink() and match.is_file()
            ),
            None,
        )
        if key is None:
            raise NoParentKey(parent.name, ssh_dir)
        return ParentContext(home_directory=parent.home, ssh_public_key_path=key)

    def _bootstrap_ssh(self, username: str, home: Path, parent: ParentContext) -> None:
        ssh_dir = home / ".ssh"
        with _step("Create ~/.ssh"):
            ssh_dir.mkdir(exist_ok=True)
            ssh_dir.chmod(0o700)
        self.reporter.step(f"Created {ssh_dir} (0700)")

        authorized_keys = ssh_dir / "authorized_keys"
        with _step("Install authorized_keys"):
            fd = os.open(parent.ssh_public_key_path, os.O_RDONLY | os.O_NOFOLLOW)
            with os.fdopen(fd, "rb") as source:
                authorized_keys.write_bytes(source.read())
            authorized_keys.chmod(0o600)
        self.reporter.step(
            f"Authorized {parent.ssh_public_key_path.name} from parent (0600)"
        )

        comment = f"{username}@{socket.gethostname()}-{date.today().isoformat()}"
        self.keygen.generate(ssh_dir / "id_ed25519", comment)
        self.reporter.step(f"Generated ed25519 key ({comment})")

    def _create_baseline(self, home: Path, parent: ParentContext) -> None:
        with _step("Create baseline directories"):
            for relative in self.settings.baseline_dirs:
                (home / relative).mkdir(parents=True, exist_ok=True)
        self.reporter.step(f"Created {', '.join(self.settings.baseline_dirs)}")

        self._copy_parent_config(home, parent)

        placeholder = home / self.settings.profile_placeholder
        with _step("Create profile placeholder"):
            placeholder.parent.mkdir(parents=True, exist_ok=True)
            placeholder.touch(exist_ok=True)
        self.reporter.step(f"Created {placeholder}")

    def _copy_parent_config(self, home: Path, parent: ParentContext) -> None:
        """Copy the configured ~/.config entries, never reading through a symlink."""
        parent_config = parent.home_directory / ".config"
        if parent_config.is_symlink():
            self.reporter.skip(f"{parent_config} is a symlink, not copying from it")
            return

        for name in self.settings.config_dirs:
            source = parent_config / name
            destination = home / ".config" / name
            if source.is_symlink():
                with _step(f"Copy ~/.config/{name}", ConfigCopyFailed):
                    os.symlink(os.readlink(source), destination)
                self.reporter.step(f"Recreated ~/.config/{name} symlink from parent")
                continue
            if not source.is_dir():
                self.reporter.skip(f"No {source} to copy")
                continue
            with _step(f"Copy ~/.config/{name}", ConfigCopyFailed):
                shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
            self.reporter.step(f"Copied ~/.config/{name} from parent")

    def _link_shared_profile(self, home: Path) -> None:
        template = self.settings.shared_profile
        if not template.exists():
            self.reporter.skip(f"No shared profile at {template}")
            return

        link = home / self.settings.profile_link
        with _step("Link shared profile"):
            # useradd may have copied a skeleton profile here
            if link.is_symlink() or link.exists():
                link.unlink()
            link.symlink_to(template)
        self.reporter.step(f"Linked {link} -> {template}")

    def _install_dev_tool(self, record: AccountRecord) -> None:
        home = record.home
        package = self.settings.dev_tool_package
        if not self.installer.available():
            self.reporter.skip(
                f"{self.settings.dev_tool_manager} not available, skipping {package}"
            )
            return

        prefix = home / ".local"
        # The install runs as the new user, who must own the prefix
        with _step("Set ownership of ~/.local"):
            chown_tree(prefix, record.uid, record.gid, chown=self.chown)

        try:
            self.installer.install(package, record.name, prefix=prefix, home=home)
        except StepFailure as e:
            if self.settings.dev_tool_required:
                raise
            logger.warning(f"Developer tool install failed: {e}")
            self.reporter.warning(f"Could not install {package}: {e.detail}")
            return
        self.reporter.step(f"Installed {package} into {home / '.local'}")

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove_user(self, username: str, force: bool = False) -> None:
        """
        Remove username and its home directory.

        Args:
            username: Account to remove
            force: Skip the interactive confirmation

        Raises:
            InvalidUsername, NotFound, Protected, ConfirmationMismatch,
            RemovalFailed, StepFailure
        """
        validate_username(username)

        # Reserved names are refused even when no such account exists here
        if username in self.settings.protected_users:
            raise Protected(username)

        record = self.accounts.lookup(username)
        if record is None:
            raise NotFound(username)

        if is_protected_user(username, self.accounts, self.settings):
            raise Protected(username)

        if not force:
            answer = self.confirm(
                f"This permanently deletes {username} and {record.home}. "
                f"Type the username to confirm"
            )
            if answer != username:
                raise ConfirmationMismatch(username)

        self.reporter.header(f"Removing user {username}")

        pids = self.processes.list_processes(username)
        if pids:
            self.processes.terminate_all(username)
            self.sleep(self.settings.kill_grace_seconds)
            self.reporter.step(f"Terminated {len(pids)} process(es)")

        for warning in self.accounts.delete(username):
            logger.warning(f"userdel: {warning}")
            self.reporter.warning(warning)
        self.reporter.step(f"Deleted account and {record.home}")

        if self.accounts.lookup(username) is not None:
            raise RemovalFailed("Verify removal", f"{username} still exists")

        self.reporter.success(f"User {username} removed")
