# -*- coding: utf-8 -*-
"""
Node Cypher generator.

Builds one CREATE or MERGE statement per record. Property values always travel
in the $props parameter map; only the label and the unique-identifier key are
written into the query text, and both are validated or come from
UNIQUE_IDENTIFIERS.

CREATE replaces the whole property map (SET n = $props) while MERGE only adds
and updates keys (SET n += $props), so importing a second dataset for an
existing node never erases properties written by the first.

Examples:
    from bank_graph.cypher.node_generator import generate_node_query

    q = generate_node_query("Person", {"person_id": "P1", "name": "Ana"},
                            merge=True, dataset_id="ds_001")
    # q.query  -> "MERGE (n:Person {person_id: $person_id}) SET n += $props RETURN n"
    # q.params -> {"person_id": "P1",
    #              "props": {"dataset_id": "ds_001", "person_id": "P1", "name": "Ana"}}
"""
# Standard library
from typing import Any, Mapping, Optional

# Local
from bank_graph.cypher.utils import get_unique_identifier, prepare_properties
from bank_graph.cypher.validators import validate_label
from bank_graph.utils.dataclasses import NodeQuery
from bank_graph.utils.errors import MissingUniqueIdentifierError


def generate_node_query(entity_type: str,
                        data: Mapping[str, Any],
                        merge: bool = False,
                        dataset_id: Optional[str] = None) -> NodeQuery:
    """
    Generate a CREATE or MERGE statement for a single node.

    Args:
        entity_type: Node label (e.g. "Person", "BankAccount")
        data: Record properties; ABSENT values are dropped, None is kept
        merge: Upsert on the entity's unique identifier instead of CREATE
        dataset_id: Optional namespace stored as the dataset_id property

    Returns:
        NodeQuery with query text and params

    Raises:
        InvalidIdentifierError: If entity_type is not a valid label
        UnknownEntityTypeError: If merge is requested for an unregistered type
        MissingUniqueIdentifierError: If merge is requested and the identifier
            is missing or null
    """
    label = validate_label(entity_type)
    props = prepare_properties(data, dataset_id)

    if not merge:
        return NodeQuery(
            query=f"CREATE (n:{label}) SET n = $props RETURN n",
            params={'props': props},
        )

    id_field = get_unique_identifier(label)
    if props.get(id_field) is None:
        raise MissingUniqueIdentifierError(id_field, label)

    return NodeQuery(
        query=f"MERGE (n:{label} {{{id_field}: ${id_field}}}) SET n += $props RETURN n",
        params={id_field: props[id_field], 'props': props},
    )
