"""
devusers errors - every error is fatal to the current invocation.
"""


class ProvisionerError(Exception):
    """Base exception for all devusers errors."""
    pass


class PreconditionError(ProvisionerError):
    """Process lacks privilege or a required external tool."""
    pass


class ValidationError(ProvisionerError):
    """Malformed input."""
    pass


class InvalidUsername(ValidationError):
    """Username does not match the allowed pattern."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(
            f"Invalid username '{username}': use lowercase letters, digits and "
            f"hyphens, start with a letter and do not end with a hyphen"
        )


class MissingOption(ValidationError):
    """Required command-line option missing or options conflict."""
    pass


class ConflictError(ProvisionerError):
    """Account state does not allow the requested operation."""
    pass


class AlreadyExists(ConflictError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User '{username}' already exists")


class NotFound(ConflictError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User '{username}' does not exist")


class Protected(ConflictError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"User '{username}' is a protected system account")


class DependencyError(ProvisionerError):
    """Something the new account is derived from is missing."""
    pass


class ParentNotFound(DependencyError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Parent user '{username}' does not exist")


class NoParentKey(DependencyError):
    def __init__(self, username: str, ssh_dir):
        self.username = username
        self.ssh_dir = ssh_dir
        super().__init__(
            f"Parent user '{username}' has no public key matching id_*.pub in {ssh_dir}"
        )


class StepFailure(ProvisionerError):
    """A filesystem or account mutation failed."""

    def __init__(self, step: str, detail: str):
        self.step = step
        self.detail = detail
        super().__init__(f"{step} failed: {detail}")


class ConfigCopyFailed(StepFailure):
    pass


class RemovalFailed(StepFailure):
    pass


class ConfirmationMismatch(ProvisionerError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Confirmation did not match '{username}'; nothing was removed")
