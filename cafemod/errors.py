class CafemodError(Exception):
    pass


class AuthConfigurationError(CafemodError):
    """No trigger secret is configured. An operational misconfiguration, not a security event."""


class UnauthorizedError(CafemodError):
    """The presented credential does not match the configured secret."""


class RunInProgressError(CafemodError):
    """Another run currently holds the job lease."""


class PlaceLookupError(CafemodError):
    pass


class RunAborted(CafemodError):
    """
    A systemic classifier failure stopped the run.
    Carries the summary of the batches that completed before the failure.
    """

    def __init__(self, message: str, summary) -> None:
        super().__init__(message)
        self.summary = summary
