"""
devusers CLI - create and remove development accounts.

    devusers --create dev-alice --parent john [-s /bin/zsh] [-g docker,wheel]
    devusers --remove dev-alice [-f]
"""

import logging
from typing import Optional

import typer
from rich.console import Console

from .errors import MissingOption, ProvisionerError
from .formatters import StepReporter
from .models import UserSpec
from .provisioner import AccountProvisioner
from .settings import ProvisionerSettings, get_settings
from .validation import check_prerequisites

# Setup
app = typer.Typer(
    name="devusers",
    help="Provision and remove development user accounts",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()
error_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def configure_logging():
    """Configure logging based on settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on module import
configure_logging()


def build_provisioner(
    settings: ProvisionerSettings, reporter: StepReporter
) -> AccountProvisioner:
    """Provisioner wired to this host."""
    return AccountProvisioner.for_host(settings, reporter=reporter)


def _show_version(value: bool):
    if value:
        from . import __version__

        console.print(f"devusers version: [bold]{__version__}[/bold]")
        raise typer.Exit()


@app.command()
def main(
    create: Optional[str] = typer.Option(
        None, "--create", metavar="USERNAME", help="Create a development user"
    ),
    remove: Optional[str] = typer.Option(
        None, "--remove", metavar="USERNAME", help="Remove a user and its home directory"
    ),
    parent: Optional[str] = typer.Option(
        None, "--parent", metavar="USERNAME", help="User whose SSH key and dotfiles seed the new user"
    ),
    shell: Optional[str] = typer.Option(
        None, "--shell", "-s", help="Login shell (default from DEVUSERS_DEFAULT_SHELL)"
    ),
    groups: Optional[str] = typer.Option(
        None, "--groups", "-g", metavar="CSV", help="Comma-separated supplementary groups"
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Do not ask for confirmation before removing"
    ),
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit"
    ),
):
    """Create or remove a development user account."""
    reporter = StepReporter(console, error_console)
    settings = get_settings()

    try:
        if create and remove:
            raise MissingOption("Use either --create or --remove, not both")
        if not create and not remove:
            raise MissingOption("One of --create or --remove is required (see --help)")
        if create and not parent:
            raise MissingOption("--create requires --parent")

        check_prerequisites(settings)
        provisioner = build_provisioner(settings, reporter)

        if create:
            spec = UserSpec(
                username=create, parent_username=parent, shell=shell, groups=groups
            )
            provisioner.create_user(spec)
        else:
            provisioner.remove_user(remove, force=force)

    except ProvisionerError as e:
        logger.debug("Provisioning failed", exc_info=True)
        reporter.error(str(e))
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        error_console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(code=130)


if __name__ == "__main__":
    app()
