"""
Failure taxonomy for the deploy pipeline.

Every fatal step error derives from DeploymentError so the orchestrator can
record its message and stop. Conflict-as-success responses never surface
here; the hosting client absorbs them.
"""
from typing import Optional


class DeploymentError(Exception):
    """A fatal pipeline error whose message is safe to show to the user."""


class HostingApiError(DeploymentError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ForkNotReadyError(DeploymentError):
    pass


class ConfigPayloadError(DeploymentError):
    pass


class UnsupportedProjectError(DeploymentError):
    pass


class ProjectConfigurationError(DeploymentError):
    pass


class BuildOutputNotFoundError(DeploymentError):
    pass


class CommandError(DeploymentError):
    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class CommandTimeoutError(CommandError):
    pass


class DeploymentCancelledError(DeploymentError):
    pass
