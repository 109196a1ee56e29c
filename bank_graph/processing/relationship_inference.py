# -*- coding: utf-8 -*-
"""
Relationship inference from detected foreign keys.

Turns the foreign keys of one table into typed, directed relationships using an
ordered table of banking domain rules. Each rule is a predicate on the triple
(row entity, FK target entity, column name) plus the relationship it produces;
rules are evaluated top to bottom and the first match wins. Some rules invert
the direction: a person_id column on an Account row means the Person owns the
Account, not the other way round.

When no rule matches but the foreign key names a concrete target entity, a
generic OWNS relationship from the row entity to the target is emitted with the
FK confidence scaled by FALLBACK_PENALTY. Targets in SKIP_TARGETS and keys
without a target are dropped.

Entity names are normalized before matching and emission (BankAccount→Account,
Manager→Person), so inferred relationships speak in normalized names.
bank_graph.graph.neo4j_import_processor maps them back to node labels.

Examples:
    from bank_graph.processing.relationship_inference import infer_relationships

    rels = infer_relationships(detect_foreign_keys(['from_iban', 'to_iban']), 'Transaction')
    # [InferredRelationship(FROM, 'Transaction', 'Account', 'from_iban', 0.9),
    #  InferredRelationship(TO, 'Transaction', 'Account', 'to_iban', 0.9)]

    query = generate_relationship_cypher(rels[0], 'TX1', 'DE89...', use_merge=True)

References:
    bank_graph.processing.fk_detector: produces the ForeignKey input
    bank_graph.cypher.utils.CypherStatement: shared rendering for both output modes
"""
# Standard library
import re
from dataclasses import dataclass
from re import Pattern
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

# Local
from bank_graph.cypher.utils import CypherStatement
from bank_graph.cypher.validators import validate_label, validate_relationship_type
from bank_graph.utils.dataclasses import ForeignKey, InferredRelationship, RelationshipQuery, RelationshipType
from bank_graph.utils.logger import get_logger

logger = get_logger(__name__)

ENTITY_ALIASES: Mapping[str, str] = {
    'BankAccount': 'Account',
    'Manager': 'Person',
}

SKIP_TARGETS = frozenset({'Reference', 'Unknown'})

FALLBACK_PENALTY = 0.8


def normalize_entity(entity: Optional[str]) -> Optional[str]:
    """Map entity aliases onto their canonical name."""
    if entity is None:
        return None
    return ENTITY_ALIASES.get(entity, entity)


# ============================================================================
# RULE TABLE
# ============================================================================

@dataclass(frozen=True)
class InferenceRule:
    """
    Predicate/action pair.

    All three patterns must fully match (column case-insensitively, after
    trimming). actual_source / actual_target override the emitted direction;
    by default the row entity is the source and the FK target the target.
    """
    source_pattern: Pattern
    target_pattern: Pattern
    column_pattern: Pattern
    relationship_type: RelationshipType
    actual_source: Optional[str] = None
    actual_target: Optional[str] = None

    def matches(self, source: str, target: Optional[str], column: str) -> bool:
        return (target is not None
                and self.source_pattern.fullmatch(source) is not None
                and self.target_pattern.fullmatch(target) is not None
                and self.column_pattern.fullmatch(column) is not None)

    def emit(self, fk: ForeignKey, source: str, target: str) -> InferredRelationship:
        return InferredRelationship(
            type=self.relationship_type,
            source_entity=self.actual_source or source,
            target_entity=self.actual_target or target,
            foreign_key_column=fk.column_name,
            confidence=fk.confidence,
        )


def _rule(source: str, target: str, column: str, rel_type: RelationshipType,
          actual_source: Optional[str] = None,
          actual_target: Optional[str] = None) -> InferenceRule:
    return InferenceRule(
        source_pattern=re.compile(source),
        target_pattern=re.compile(target),
        column_pattern=re.compile(column, re.IGNORECASE),
        relationship_type=rel_type,
        actual_source=actual_source,
        actual_target=actual_target,
    )


_OWNS = RelationshipType.OWNS

DOMAIN_RULES: Tuple[InferenceRule, ...] = (
    # Account rows
    _rule('Account', 'Person', r'person_id', _OWNS, actual_source='Person', actual_target='Account'),
    _rule('Account', 'Company', r'company_id', _OWNS, actual_source='Company', actual_target='Account'),
    _rule('Account', 'Bank', r'bank_id', RelationshipType.HELD_AT),

    # Transaction rows
    _rule('Transaction', 'Account', r'from_?iban', RelationshipType.FROM),
    _rule('Transaction', 'Account', r'to_?iban', RelationshipType.TO),

    # Person rows
    _rule('Person', 'Person', r'(?:parent|manager)_id', RelationshipType.REPORTS_TO),
    _rule('Person', 'Company', r'company_id', _OWNS),
    _rule('Person', 'Account', r'account_id|\w*_?iban', _OWNS),

    # Company rows
    _rule('Company', 'Person', r'person_id', RelationshipType.CONTROLS,
          actual_source='Person', actual_target='Company'),
)


# ============================================================================
# INFERENCE
# ============================================================================

def infer_relationships(foreign_keys: Iterable[ForeignKey],
                        source_entity: str,
                        rules: Sequence[InferenceRule] = DOMAIN_RULES) -> List[InferredRelationship]:
    """
    Infer relationships for one table.

    Args:
        foreign_keys: Output of detect_foreign_keys() for the table
        source_entity: Entity type of the table's rows (e.g. "BankAccount")
        rules: Ordered rule table; first match wins

    Returns:
        Inferred relationships sorted by confidence, highest first. Each keeps
        the FK's original column_name as foreign_key_column.
    """
    source = normalize_entity(source_entity)
    relationships: List[InferredRelationship] = []

    for fk in foreign_keys:
        target = normalize_entity(fk.target_entity)
        column = fk.column_name.strip()

        rule = next((r for r in rules if r.matches(source, target, column)), None)
        if rule is not None:
            relationships.append(rule.emit(fk, source, target))
            continue

        if target is None or target in SKIP_TARGETS:
            logger.debug(f"No relationship inferred for {source}.{column} (target: {target})")
            continue

        relationships.append(InferredRelationship(
            type=RelationshipType.OWNS,
            source_entity=source,
            target_entity=target,
            foreign_key_column=fk.column_name,
            confidence=fk.confidence * FALLBACK_PENALTY,
        ))

    relationships.sort(key=lambda rel: rel.confidence, reverse=True)
    return relationships


def _type_name(rel_type) -> str:
    return rel_type.value if isinstance(rel_type, RelationshipType) else rel_type


# ============================================================================
# CYPHER RENDERING
# ============================================================================

def build_relationship_statement(relationship: InferredRelationship,
                                 source_id: Any,
                                 target_id: Any,
                                 use_merge: bool = False) -> CypherStatement:
    """
    Build the statement for one inferred relationship.

    Endpoints are matched on their id property. confidence is always inlined
    as a number; other properties become $prop_<key> placeholders.
    """
    source_label = validate_label(relationship.source_entity)
    target_label = validate_label(relationship.target_entity)
    rel_type = validate_relationship_type(_type_name(relationship.type))

    extra: Dict[str, Any] = {
        key: value for key, value in (relationship.properties or {}).items()
        if key != 'confidence'
    }

    stmt = CypherStatement()
    stmt.text(f"MATCH (a:{source_label} {{id: ").param('sourceId', source_id).text("})\n")
    stmt.text(f"MATCH (b:{target_label} {{id: ").param('targetId', target_id).text("})\n")
    stmt.text(f"{'MERGE' if use_merge else 'CREATE'} (a)-[r:{rel_type} ")
    stmt.property_map(extra, inline={'confidence': relationship.confidence})
    stmt.text("]->(b)\nRETURN r")
    return stmt


def generate_relationship_cypher(relationship: InferredRelationship,
                                 source_id: Any,
                                 target_id: Any,
                                 use_merge: bool = False,
                                 use_parameters: bool = True) -> RelationshipQuery:
    """
    Render an inferred relationship as Cypher.

    Args:
        relationship: Relationship to write
        source_id: id of the source node
        target_id: id of the target node
        use_merge: MERGE instead of CREATE
        use_parameters: Bind values as parameters (default). With False every
            value is rendered as an escaped literal and params is empty; use
            that only for logs and debugging.

    Returns:
        RelationshipQuery

    Raises:
        InvalidIdentifierError: Invalid label or relationship type
        InvalidPropertyKeyError: A property key cannot be written into Cypher
    """
    stmt = build_relationship_statement(relationship, source_id, target_id, use_merge)
    if use_parameters:
        query, params = stmt.to_parameterized()
        return RelationshipQuery(query=query, params=params)
    return RelationshipQuery(query=stmt.to_literal(), params={})


def generate_batch_relationship_cypher(relationships: Sequence[InferredRelationship]) -> str:
    """
    Summarize inferred relationships as a Cypher comment block.

    The block documents what an import would write; it is not executable.
    Labels and types are validated and column names flattened to one line so
    nothing can escape the comment. Returns '' for an empty list.
    """
    if not relationships:
        return ''

    lines = [f"// Inferred relationships ({len(relationships)})"]
    for index, rel in enumerate(relationships, 1):
        source = validate_label(rel.source_entity)
        target = validate_label(rel.target_entity)
        rel_type = validate_relationship_type(_type_name(rel.type))
        column = ' '.join(str(rel.foreign_key_column).split())
        lines.append(
            f"// {index}. (:{source})-[:{rel_type}]->(:{target}) "
            f"via {column} (confidence {rel.confidence:.2f})"
        )
    return '\n'.join(lines)
