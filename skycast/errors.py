"""Domain exceptions."""


class SkycastError(Exception):
    """Base class for Skycast errors."""


class SessionNotFound(SkycastError):
    """Raised when a session id does not refer to a known session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class OperationNotFound(SkycastError):
    """The generation backend no longer knows about a submitted operation."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"Operation '{handle}' not found")
        self.handle = handle
