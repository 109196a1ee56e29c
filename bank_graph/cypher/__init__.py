# -*- coding: utf-8 -*-
"""
Cypher generation package.

Contains validators (identifier whitelist for labels, relationship types and
property keys), utils (unique-identifier table, property preparation and the
CypherStatement builder), node_generator and relationship_generator.
"""
from bank_graph.cypher.utils import ABSENT, UNIQUE_IDENTIFIERS
from bank_graph.cypher.validators import is_valid_identifier, validate_identifier
from bank_graph.cypher.node_generator import generate_node_query
from bank_graph.cypher.relationship_generator import generate_relationship_query

__all__ = [
    'ABSENT',
    'UNIQUE_IDENTIFIERS',
    'is_valid_identifier',
    'validate_identifier',
    'generate_node_query',
    'generate_relationship_query',
]
