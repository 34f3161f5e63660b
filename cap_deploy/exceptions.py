"""Exceptions related to cap-deploy."""

__all__ = [
    "DeployException",
    "InputException",
    "ToolNotFoundException",
    "ArtifactNotFoundException",
    "SecretNotFoundException",
    "CredentialException",
    "CommandException",
    "KubectlException",
    "JobFailedException",
    "JobTimeoutException",
]


class DeployException(Exception):
    """Generic base exception used for this library."""


class InputException(DeployException):
    """Raised when the configuration or input values are not as expected."""


class EnvironmentException(InputException):
    """Raised when the local environment is not ready for a deployment.

    These errors are fatal and are never retried. The hint describes how the
    operator can fix the environment.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(f"{message}\n{hint}" if hint else message)
        self.hint = hint


class ToolNotFoundException(EnvironmentException):
    """Raised when a required command line tool is not installed."""


class ArtifactNotFoundException(EnvironmentException):
    """Raised when the generated build artifacts are missing."""


class SecretNotFoundException(EnvironmentException):
    """Raised when a credential Secret does not exist in the cluster."""


class CredentialException(EnvironmentException):
    """Raised when a credential Secret is missing required fields."""


class CommandException(DeployException):
    """Raised when there is a failure running a subcommand."""


class KubectlException(CommandException):
    """Raised when there is a failure running a kubectl command."""


class JobException(DeployException):
    """Raised when a deployer Job did not complete."""

    def __init__(self, job_name: str, message: str) -> None:
        super().__init__(f"Job {job_name} {message}")
        self.job_name = job_name


class JobFailedException(JobException):
    """Raised when a deployer Job exhausted its retry budget."""

    def __init__(self, job_name: str, reason: str | None = None) -> None:
        super().__init__(job_name, f"failed: {reason or 'Unknown error'}")
        self.reason = reason


class JobTimeoutException(JobException):
    """Raised when a deployer Job did not finish before the timeout."""

    def __init__(self, job_name: str, timeout: float) -> None:
        super().__init__(job_name, f"did not complete within {timeout:g}s")
        self.timeout = timeout
