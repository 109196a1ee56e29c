# -*- coding: utf-8 -*-
"""
Shared helpers for Cypher generation.

Holds the unique-identifier table (the single place that says which property
identifies each entity type), the ABSENT marker and property preparation used
by both generators, and CypherStatement: a small builder that keeps query text
and placeholder tokens together so the same statement can be rendered either
with a parameter map or as an escaped literal string.

Examples:
    from bank_graph.cypher.utils import CypherStatement

    stmt = (CypherStatement()
            .text("MATCH (a:Person {id: ").param("sourceId", "p1").text("})"))
    stmt.to_parameterized()   # ("MATCH (a:Person {id: $sourceId})", {"sourceId": "p1"})
    stmt.to_literal()         # "MATCH (a:Person {id: 'p1'})"

References:
    Neo4j Cypher manual: parameters may not be used for labels,
    relationship types or property keys
"""
# Standard library
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple

# Local
from bank_graph.cypher.validators import validate_property_key
from bank_graph.utils.errors import UnknownEntityTypeError


# ============================================================================
# UNIQUE IDENTIFIERS
# ============================================================================

UNIQUE_IDENTIFIERS: Mapping[str, str] = MappingProxyType({
    'Person': 'person_id',
    'BankAccount': 'iban',
    'Bank': 'bank_id',
    'Company': 'company_id',
    'Transaction': 'transaction_id',
})


def get_unique_identifier(entity_type: str) -> str:
    """Return the identifying property for entity_type or raise UnknownEntityTypeError."""
    try:
        return UNIQUE_IDENTIFIERS[entity_type]
    except (KeyError, TypeError):
        raise UnknownEntityTypeError(entity_type) from None


# ============================================================================
# PROPERTY PREPARATION
# ============================================================================

class _Absent:
    """Marker for a field that carries no value at all (unlike None)."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'ABSENT'

    def __bool__(self):
        return False

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


def filter_absent(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop keys whose value is ABSENT; None values are kept and stored as null."""
    if not data:
        return {}
    return {key: value for key, value in data.items() if value is not ABSENT}


def prepare_properties(data: Optional[Mapping[str, Any]],
                       dataset_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Filter absent values and optionally namespace the record with dataset_id.

    dataset_id is inserted first, so a dataset_id already present in the record
    wins over the argument.
    """
    filtered = filter_absent(data)
    if dataset_id is None:
        return filtered
    return {'dataset_id': dataset_id, **filtered}


# ============================================================================
# LITERAL RENDERING
# ============================================================================

def escape_string(value: str) -> str:
    """Escape backslashes, then single quotes, for a single-quoted Cypher string."""
    return value.replace('\\', '\\\\').replace("'", "\\'")


def format_literal(value: Any) -> str:
    """Render a Python value as a Cypher literal."""
    if value is None or value is ABSENT:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return f"'{escape_string(value)}'"
    if isinstance(value, Mapping):
        entries = ', '.join(
            f"{validate_property_key(key)}: {format_literal(item)}"
            for key, item in value.items()
        )
        return '{' + entries + '}'
    if isinstance(value, (list, tuple, set, frozenset)):
        return '[' + ', '.join(format_literal(item) for item in value) + ']'
    return f"'{escape_string(str(value))}'"


# ============================================================================
# STATEMENT BUILDER
# ============================================================================

class Param(NamedTuple):
    """Placeholder token inside a CypherStatement."""
    name: str
    value: Any


class CypherStatement:
    """
    Query text with explicit placeholder tokens.

    Text fragments are appended verbatim, so callers must only pass validated
    identifiers and fixed keywords to text(). Values always go through param()
    and are either bound as $name or rendered with format_literal().
    """

    def __init__(self):
        self._parts: List[Any] = []

    def text(self, fragment: str) -> 'CypherStatement':
        self._parts.append(fragment)
        return self

    def literal(self, value: Any) -> 'CypherStatement':
        """Append a value rendered inline in both modes (engine-produced values only)."""
        self._parts.append(format_literal(value))
        return self

    def param(self, name: str, value: Any) -> 'CypherStatement':
        validate_property_key(name)
        self._parts.append(Param(name, value))
        return self

    def property_map(self, properties: Mapping[str, Any],
                     prefix: str = 'prop_',
                     inline: Optional[Mapping[str, Any]] = None) -> 'CypherStatement':
        """
        Append an inline map {key: <value>, ...}.

        Keys in ``inline`` are rendered as literals in both modes and come first;
        the rest become $<prefix><key> placeholders. All keys must be valid
        property keys.
        """
        entries = [(key, value, True) for key, value in (inline or {}).items()]
        entries += [(key, value, False) for key, value in properties.items()]
        self.text('{')
        for index, (key, value, is_inline) in enumerate(entries):
            validate_property_key(key)
            if index:
                self.text(', ')
            self.text(f'{key}: ')
            if is_inline:
                self.literal(value)
            else:
                self.param(f'{prefix}{key}', value)
        return self.text('}')

    def to_parameterized(self) -> Tuple[str, Dict[str, Any]]:
        """Render with $name placeholders and return (query, params)."""
        chunks = []
        params: Dict[str, Any] = {}
        for part in self._parts:
            if isinstance(part, Param):
                chunks.append(f'${part.name}')
                params[part.name] = part.value
            else:
                chunks.append(part)
        return ''.join(chunks), params

    def to_literal(self) -> str:
        """Render with every placeholder replaced by its escaped literal value."""
        return ''.join(
            format_literal(part.value) if isinstance(part, Param) else part
            for part in self._parts
        )

    def __str__(self):
        return self.to_parameterized()[0]
