"""Error taxonomy for the retrieval engine.

None of these escape ``RetrievalEngine.index``/``search``: the engine turns
them into empty or degraded outcomes and logs them.
"""


class RetrievalError(Exception):
    """Base class for retrieval engine errors."""


class InputError(RetrievalError):
    """Empty or invalid query or text."""


class BackendUnavailableError(RetrievalError):
    """External vector backend unreachable, misconfigured or failing."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class IndexStateError(RetrievalError):
    """Search attempted before any corpus was indexed."""
