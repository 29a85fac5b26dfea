"""
devusers Settings - Configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files. The settings
object is frozen: the provisioner receives one instance and never mutates it.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Find project root (where .env file is located)
PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_PROTECTED_USERS = frozenset(
    {
        "root",
        "daemon",
        "bin",
        "sys",
        "sync",
        "games",
        "man",
        "lp",
        "mail",
        "news",
        "uucp",
        "proxy",
        "www-data",
        "backup",
        "list",
        "irc",
        "nobody",
        "sshd",
        "admin",
        "ubuntu",
    }
)


class ProvisionerSettings(BaseSettings):
    """
    devusers configuration settings.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file in the project root (parent of the devusers package)
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        env_prefix="DEVUSERS_",  # All devusers env vars must start with DEVUSERS_
    )

    # Removal guard
    protected_users: frozenset[str] = Field(
        default=DEFAULT_PROTECTED_USERS,
        description="Usernames that can never be removed (env: DEVUSERS_PROTECTED_USERS)",
    )

    uid_floor: int = Field(
        default=1000,
        description="Accounts with a UID below this are protected (env: DEVUSERS_UID_FLOOR)",
    )

    # Account layout
    default_shell: str = Field(
        default="/bin/zsh",
        description="Login shell for new accounts (env: DEVUSERS_DEFAULT_SHELL)",
    )

    home_root: Path = Field(
        default=Path("/home"),
        description="Directory holding user home directories (env: DEVUSERS_HOME_ROOT)",
    )

    required_tools: tuple[str, ...] = Field(
        default=("useradd", "ssh-keygen"),
        description="Executables that must be on PATH (env: DEVUSERS_REQUIRED_TOOLS)",
    )

    baseline_dirs: tuple[str, ...] = Field(
        default=(".config", ".cache", ".local/bin", ".local/share", ".local/src"),
        description="Directories created in every new home (env: DEVUSERS_BASELINE_DIRS)",
    )

    config_dirs: tuple[str, ...] = Field(
        default=("zsh", "nvim"),
        description="Parent ~/.config subdirectories copied when present (env: DEVUSERS_CONFIG_DIRS)",
    )

    # Shell profile
    profile_placeholder: str = Field(
        default=".config/shell/profile.local",
        description="Empty profile file created in every new home (env: DEVUSERS_PROFILE_PLACEHOLDER)",
    )

    shared_profile: Path = Field(
        default=Path("/etc/dotfiles/zprofile"),
        description="Shared login profile template (env: DEVUSERS_SHARED_PROFILE)",
    )

    profile_link: str = Field(
        default=".zprofile",
        description="Profile file linked to the shared template (env: DEVUSERS_PROFILE_LINK)",
    )

    # Developer tool
    dev_tool_manager: str = Field(
        default="npm",
        description="Package manager used for the developer tool (env: DEVUSERS_DEV_TOOL_MANAGER)",
    )

    dev_tool_package: str = Field(
        default="neovim",
        description="Package installed into ~/.local for new users (env: DEVUSERS_DEV_TOOL_PACKAGE)",
    )

    dev_tool_required: bool = Field(
        default=False,
        description="Fail account creation if the developer tool install fails (env: DEVUSERS_DEV_TOOL_REQUIRED)",
    )

    # Removal
    kill_grace_seconds: float = Field(
        default=1.0,
        description="Pause after killing user processes (env: DEVUSERS_KILL_GRACE_SECONDS)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR) (env: DEVUSERS_LOG_LEVEL)",
    )


# Global settings instance
_settings: ProvisionerSettings | None = None


def get_settings() -> ProvisionerSettings:
    """
    Get the global settings instance.

    Creates the settings instance on first call, then returns cached instance.

    Returns:
        ProvisionerSettings instance
    """
    global _settings
    if _settings is None:
        _settings = ProvisionerSettings()
    return _settings


def reload_settings() -> ProvisionerSettings:
    """
    Reload settings from environment/files.

    Useful for testing or when .env file changes.

    Returns:
        Fresh ProvisionerSettings instance
    """
    global _settings
    _settings = ProvisionerSettings()
    return _settings
