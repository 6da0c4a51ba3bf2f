class TaskboardError(Exception):
    """Base class for taskboard errors."""


class NotFoundError(TaskboardError, LookupError):
    """A referenced board, list or card id does not resolve."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} '{entity_id}' not found")


class PersistenceError(TaskboardError):
    """A key-value transport failed to read or write.

    Raised by transports only; the persistence adapter catches and logs it.
    """
