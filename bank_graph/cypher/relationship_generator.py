# -*- coding: utf-8 -*-
"""
Relationship Cypher generator.

Matches both endpoints on their unique identifier and creates (or merges) a
typed relationship between them. Endpoint values are always bound as $fromId and
$toId; the relationship type and both labels are validated identifiers.

Examples:
    from bank_graph.cypher.relationship_generator import generate_relationship_query

    q = generate_relationship_query(
        "OWNS",
        {"entityType": "Person", "person_id": "P1"},
        {"entityType": "BankAccount", "iban": "DE89370400440532013000"},
        properties={"since": "2020-01-15"},
    )
    # MATCH (from:Person {person_id: $fromId})
    # MATCH (to:BankAccount {iban: $toId})
    # CREATE (from)-[r:OWNS]->(to)
    # SET r = $props
    # RETURN r
"""
# Standard library
from typing import Any, Mapping, Optional, Tuple

# Local
from bank_graph.cypher.utils import ABSENT, get_unique_identifier, prepare_properties
from bank_graph.cypher.validators import validate_label, validate_relationship_type
from bank_graph.utils.dataclasses import RelationshipQuery
from bank_graph.utils.errors import MissingIdentifierError


def node_entity_type(node: Mapping[str, Any]):
    """Entity type of a node reference; accepts entityType or entity_type."""
    if 'entityType' in node:
        return node['entityType']
    return node.get('entity_type')


def resolve_node_identifier(node: Mapping[str, Any], side: str) -> Tuple[str, str, Any]:
    """
    Validate a node reference and extract its identifier.

    A None identifier counts as missing: MATCH on null never finds a node.

    Returns:
        Tuple of (label, id_field, id_value)
    """
    label = validate_label(node_entity_type(node))
    id_field = get_unique_identifier(label)
    value = node.get(id_field, ABSENT)
    if value is ABSENT or value is None:
        raise MissingIdentifierError(label, id_field, side)
    return label, id_field, value


def generate_relationship_query(relationship_type: str,
                                source_node: Mapping[str, Any],
                                target_node: Mapping[str, Any],
                                merge: bool = False,
                                dataset_id: Optional[str] = None,
                                properties: Optional[Mapping[str, Any]] = None) -> RelationshipQuery:
    """
    Generate a CREATE or MERGE statement for one relationship.

    Args:
        relationship_type: e.g. "OWNS", "HELD_AT"
        source_node: Mapping with entityType plus the type's identifier field
        target_node: Same shape as source_node
        merge: Use MERGE instead of CREATE for the relationship
        dataset_id: Optional namespace stored as the dataset_id property
        properties: Relationship properties; insertion order is preserved

    Returns:
        RelationshipQuery with fromId/toId (and props when non-empty)

    Raises:
        InvalidIdentifierError: Invalid relationship type or label
        UnknownEntityTypeError: Endpoint type has no registered identifier
        MissingIdentifierError: Endpoint lacks its identifier value
    """
    rel_type = validate_relationship_type(relationship_type)

    source_label, source_field, source_id = resolve_node_identifier(source_node, 'source')
    target_label, target_field, target_id = resolve_node_identifier(target_node, 'target')

    props = prepare_properties(properties, dataset_id)
    verb = 'MERGE' if merge else 'CREATE'

    lines = [
        f"MATCH (from:{source_label} {{{source_field}: $fromId}})",
        f"MATCH (to:{target_label} {{{target_field}: $toId}})",
        f"{verb} (from)-[r:{rel_type}]->(to)",
    ]
    params = {'fromId': source_id, 'toId': target_id}

    if props:
        lines.append("SET r += $props" if merge else "SET r = $props")
        params['props'] = props

    lines.append("RETURN r")
    return RelationshipQuery(query='\n'.join(lines), params=params)
