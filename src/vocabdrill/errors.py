"""Exceptions raised by the practice engine."""


class VocabDrillError(Exception):
    """Base class for engine errors."""


class NotFoundError(VocabDrillError, ValueError):
    """A word record, session or user does not exist."""

    def __init__(self, entity: str, entity_id: int):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidInputError(VocabDrillError, ValueError):
    """Input that cannot be recovered with a default."""


class StoreConflictError(VocabDrillError):
    """A concurrent write changed the row between read and write."""

    def __init__(self, operation: str, attempts: int):
        super().__init__(f"Write conflict in {operation} after {attempts} attempt(s)")
        self.operation = operation
        self.attempts = attempts
