"""
Base exception hierarchy

Provides a consistent exception structure across the updater
with clear error messages and recovery hints.

Runtime failures of the download and install operations are not raised to the
caller. They travel inside failure events (see update/models.py) so that a host
application integrates by reading events instead of wrapping calls.
"""

from packaging.version import InvalidVersion as _PackagingInvalidVersion


class UpdaterError(Exception):
    """
    Base exception for all updater errors

    Attributes:
        message: Error message
        component: Component that raised the error
        recovery_hint: Optional hint for recovery
    """

    def __init__(self, message: str, component: str = "", recovery_hint: str = ""):
        self.message = message
        self.component = component
        self.recovery_hint = recovery_hint
        super().__init__(message)

    def __str__(self) -> str:
        msg = super().__str__()
        if self.component:
            msg = f"[{self.component}] {msg}"
        if self.recovery_hint:
            msg += f" (Hint: {self.recovery_hint})"
        return msg


class ConfigurationError(UpdaterError):
    """Invalid updater configuration (repository owner, name, paths)"""

    def __init__(self, message: str, recovery_hint: str = ""):
        super().__init__(
            message,
            component="Configuration",
            recovery_hint=recovery_hint or "Check the GITHUB_UPDATER_* settings",
        )


class InvalidVersion(UpdaterError, _PackagingInvalidVersion):
    """Version text is empty, non-numeric or malformed"""

    def __init__(self, text: str, reason: str = ""):
        self.text = text
        message = f"Invalid version string: {text!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, component="Version")


class ReleaseLookupFailed(UpdaterError):
    """Release listing failed (network, authentication, bad response)"""

    def __init__(self, message: str = "Failed to list releases", recovery_hint: str = ""):
        super().__init__(
            message,
            component="Releases",
            recovery_hint=recovery_hint or "Check network connectivity, repository name and token",
        )


class NoUpdateAvailable(UpdaterError):
    """Download requested without a resolved release"""

    def __init__(self, message: str = "There isn't any update available"):
        super().__init__(
            message,
            component="Download",
            recovery_hint="Run check_for_updates() first and pass the returned cycle",
        )


class TransferFailed(UpdaterError):
    """I/O or HTTP error while downloading or committing the payload"""

    def __init__(
        self,
        message: str = "Download failed",
        recovery_hint: str = "",
        cause: BaseException | None = None,
    ):
        self.cause = cause
        super().__init__(
            message,
            component="Download",
            recovery_hint=recovery_hint or "Reissue download_update() to retry",
        )
        self.__cause__ = cause


class NoUpdateStaged(UpdaterError):
    """Install requested while the staging directory is empty"""

    def __init__(self, message: str = "There isn't any downloaded update"):
        super().__init__(
            message,
            component="Install",
            recovery_hint="Download an update before installing",
        )


class InstallationLaunchFailed(UpdaterError):
    """The handoff process could not be started"""

    def __init__(
        self,
        message: str = "Failed to launch the update handoff process",
        recovery_hint: str = "",
        cause: BaseException | None = None,
    ):
        self.cause = cause
        super().__init__(
            message,
            component="Install",
            recovery_hint=recovery_hint or "Check that the handoff script exists and is executable",
        )
        self.__cause__ = cause


class UpdaterBusy(UpdaterError):
    """An operation was issued while another one is still in flight"""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(
            f"Cannot {operation} while updater is {state}",
            component="Updater",
            recovery_hint="Wait for the current operation to finish",
        )
