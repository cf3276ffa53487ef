"""
Bridge Exceptions

Operation-level failures are never raised; they reach callbacks as error
codes. The exceptions here cover structural problems between the bridge
and the client library, and misuse of bridge objects.
"""


class KVBridgeError(Exception):
    """Base class for all bridge errors."""


class UnsupportedResponseVersion(KVBridgeError):
    """A response record used a layout version the bridge does not understand."""

    def __init__(self, kind: str, version: int):
        self.kind = kind
        self.version = version
        super().__init__(
            f"Received an unsupported object version for {kind}: {version}"
        )


class ReferenceDisposedError(KVBridgeError):
    """A persistent reference was read after it had been disposed."""


class UnknownCookieError(KVBridgeError):
    """A completion arrived for a call id that is not registered."""

    def __init__(self, call_id):
        self.call_id = call_id
        super().__init__(f"No completion cookie registered for call id {call_id!r}")


class OperationScheduleError(KVBridgeError):
    """The client library refused to schedule an operation."""

    def __init__(self, operation: str, code: int):
        self.operation = operation
        self.code = code
        super().__init__(f"Failed to schedule {operation}: error code {int(code):#04x}")
