# services/errors.py


class GraphPayloadError(ValueError):
    """Raised when a graph or paper payload is structurally invalid."""
    pass


class SessionNotFoundError(LookupError):
    """Raised when a session does not exist."""
    pass


class SessionAccessError(PermissionError):
    """Raised when a session exists but belongs to another user."""
    pass


class GraphBuildError(RuntimeError):
    """Raised when a build batch yields no usable paper nodes."""
    pass


class ClassificationError(RuntimeError):
    """Raised when a relationship classification cannot be trusted."""
    pass
