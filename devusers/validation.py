"""Input and environment checks shared by create and remove."""

import logging
import os
import re
import shutil
from typing import Callable, Optional

from .errors import InvalidUsername, PreconditionError
from .settings import ProvisionerSettings
from .system import AccountStore

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"[a-z][a-z0-9-]*[a-z0-9]")


def validate_username(username: str) -> None:
    """Reject anything but lowercase names like ``dev-alice``.

    A valid name starts with a letter, contains only lowercase letters, digits
    and hyphens, does not end with a hyphen and is at least two characters.

    Raises:
        InvalidUsername: If username does not match
    """
    if not USERNAME_PATTERN.fullmatch(username or ""):
        raise InvalidUsername(username)


def is_protected_user(
    username: str, accounts: AccountStore, settings: ProvisionerSettings
) -> bool:
    """Whether username is a reserved name or a system account.

    Always consults the live user database, so a UID change between runs is
    picked up.
    """
    if username in settings.protected_users:
        return True

    record = accounts.lookup(username)
    if record is not None and record.uid < settings.uid_floor:
        logger.info(f"{username} has UID {record.uid} (< {settings.uid_floor})")
        return True

    return False


def check_prerequisites(
    settings: ProvisionerSettings,
    geteuid: Callable[[], int] = os.geteuid,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> None:
    """Fail fast unless running as root with the required tools on PATH.

    Raises:
        PreconditionError: On the first unmet condition
    """
    if geteuid() != 0:
        raise PreconditionError("This command must be run as root")

    missing = [tool for tool in settings.required_tools if which(tool) is None]
    if missing:
        raise PreconditionError(f"Required tools not found on PATH: {', '.join(missing)}")
