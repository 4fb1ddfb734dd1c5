# errors.py
"""
Error types raised by the session gateway.
The HTTP layer turns InvalidArgument into a 400 and every other GatewayError into a 500.
"""


class GatewayError(Exception):
    """Base class for every failure the gateway reports to its callers."""


class NotInitialized(GatewayError):
    def __init__(self, message="Client not initialized"):
        super().__init__(message)


class InvalidArgument(GatewayError):
    pass


class EngineInitFailure(GatewayError):
    pass


class EngineDestroyFailure(GatewayError):
    # Only ever logged; destroy is best-effort.
    pass


class SendFailed(GatewayError):
    def __init__(self, cause):
        super().__init__(str(cause))
        self.cause = cause


class FilesystemError(GatewayError):
    pass
