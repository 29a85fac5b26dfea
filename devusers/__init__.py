"""
devusers - Provision and remove development user accounts.

Creates a user seeded from a parent account (SSH trust, baseline dotfiles)
and later removes it together with its home directory.
"""

from .provisioner import AccountProvisioner
from .settings import ProvisionerSettings, get_settings, reload_settings

__version__ = "0.1.0"
__all__ = [
    "AccountProvisioner",
    "ProvisionerSettings",
    "get_settings",
    "reload_settings",
]
