# -*- coding: utf-8 -*-
"""
Exception hierarchy for the import pipeline.

Every validation error is raised before any query text is built or any write is
issued. All of them subclass ValueError so callers that already guard with
``except ValueError`` keep working. Store errors raised by the Neo4j driver are
never wrapped: after batch retries are exhausted they surface unchanged.
"""


class GraphImportError(Exception):
    """Base class for errors raised by this package."""


class InvalidIdentifierError(GraphImportError, ValueError):
    """Label, relationship type or property key is not a safe Cypher identifier."""

    def __init__(self, identifier, kind: str = "identifier"):
        self.identifier = identifier
        self.kind = kind
        super().__init__(
            f'Invalid Neo4j {kind}: "{identifier}". '
            f"Must start with a letter or underscore and contain only letters, "
            f"digits and underscores."
        )


class InvalidPropertyKeyError(InvalidIdentifierError):
    """Property key cannot be written into query text."""

    def __init__(self, identifier):
        super().__init__(identifier, kind="property key")


class UnknownEntityTypeError(GraphImportError, ValueError):
    """Entity type has no registered unique identifier."""

    def __init__(self, entity_type):
        self.entity_type = entity_type
        super().__init__(f"Unknown entity type: {entity_type}")


class MissingUniqueIdentifierError(GraphImportError, ValueError):
    """MERGE requested for a record that lacks its unique identifier."""

    def __init__(self, field_name: str, entity_type: str):
        self.field_name = field_name
        self.entity_type = entity_type
        super().__init__(
            f'Missing required unique identifier "{field_name}" '
            f"for MERGE operation on {entity_type}"
        )


class MissingIdentifierError(GraphImportError, ValueError):
    """Relationship endpoint lacks the identifier needed to MATCH it."""

    def __init__(self, entity_type: str, field_name: str, side: str):
        self.entity_type = entity_type
        self.field_name = field_name
        self.side = side
        super().__init__(
            f'Missing identifier "{field_name}" for {side} node {entity_type}'
        )


class InvalidArgumentError(GraphImportError, ValueError):
    """Malformed batch configuration."""
