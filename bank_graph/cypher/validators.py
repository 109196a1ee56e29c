# -*- coding: utf-8 -*-
"""
Identifier validation for Cypher query text.

Neo4j parameters can carry values but not labels, relationship types or
property keys, so those strings end up inside the query text itself. Every one
of them passes through validate_identifier() first; anything that is not a
plain ASCII identifier is rejected before a query is built.

Examples:
    from bank_graph.cypher.validators import validate_identifier

    label = validate_identifier("BankAccount", "label")     # -> "BankAccount"
    validate_identifier("Person; DROP", "label")            # raises InvalidIdentifierError
"""
# Standard library
import re

# Local
from bank_graph.utils.errors import InvalidIdentifierError, InvalidPropertyKeyError

IDENTIFIER_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')

LABEL = "label"
RELATIONSHIP_TYPE = "relationship type"
PROPERTY_KEY = "property key"


def is_valid_identifier(value) -> bool:
    """Return True if value is a non-empty string usable as a bare identifier."""
    return isinstance(value, str) and IDENTIFIER_PATTERN.fullmatch(value) is not None


def validate_identifier(value, kind: str = LABEL) -> str:
    """
    Validate a label, relationship type or property key.

    Args:
        value: Candidate identifier
        kind: One of LABEL, RELATIONSHIP_TYPE, PROPERTY_KEY (used in the message)

    Returns:
        The identifier unchanged, for chaining

    Raises:
        InvalidPropertyKeyError: If kind is PROPERTY_KEY and value is invalid
        InvalidIdentifierError: For any other invalid identifier
    """
    if is_valid_identifier(value):
        return value
    if kind == PROPERTY_KEY:
        raise InvalidPropertyKeyError(value)
    raise InvalidIdentifierError(value, kind)


def validate_label(value) -> str:
    return validate_identifier(value, LABEL)


def validate_relationship_type(value) -> str:
    return validate_identifier(value, RELATIONSHIP_TYPE)


def validate_property_key(value) -> str:
    return validate_identifier(value, PROPERTY_KEY)
