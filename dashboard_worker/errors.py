"""Exception types raised across the worker."""


class DashboardWorkerError(Exception):
    """Base class for all worker errors."""


class InstallError(DashboardWorkerError):
    """A dependency could not be installed."""

    def __init__(self, reference: str, reason: str = ""):
        self.reference = reference
        self.reason = reason
        super().__init__(f"{reference}: {reason}" if reason else reference)


class ApplicationError(DashboardWorkerError):
    """The application definition could not be loaded."""


class PatchError(DashboardWorkerError):
    """A patch could not be decoded or applied to a document."""
