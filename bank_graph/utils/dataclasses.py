# -*- coding: utf-8 -*-
"""
Core data structures for the banking graph import pipeline.

Single source of truth for the plain data passed between pipeline stages:
detected foreign keys, inferred relationships, generated Cypher queries, and
batch progress/results. Import from this module rather than individual modules
for consistency.

Examples:
# Import core data structures
    from bank_graph.utils.dataclasses import ForeignKey, PatternType

    fk = ForeignKey(
        column_name="person_id",
        confidence=0.95,
        target_entity="Person",
        pattern_type=PatternType.DOMAIN_SPECIFIC
    )

"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


# ============================================================================
# ENUMS
# ============================================================================

class PatternType(Enum):
    """Which detector tier produced a foreign key."""
    DOMAIN_SPECIFIC = "domain_specific"
    IBAN = "iban"
    SUFFIX_ID = "suffix_id"
    SUFFIX_ID_CAMEL = "suffix_id_camel"
    REFERENCE = "reference"
    CUSTOM = "custom"


class RelationshipType(Enum):
    """Relationship types the inference engine can emit."""
    OWNS = "OWNS"
    HELD_AT = "HELD_AT"
    FROM = "FROM"
    TO = "TO"
    REPORTS_TO = "REPORTS_TO"
    CONTROLS = "CONTROLS"


# ============================================================================
# DETECTION AND INFERENCE
# ============================================================================

@dataclass
class ForeignKey:
    """
    Column believed to reference another entity's identifier.

    column_name is the header exactly as supplied (untrimmed), so callers can
    use it to index their rows.
    """
    column_name: str
    confidence: float                       # 0.0-1.0
    pattern_type: PatternType
    target_entity: Optional[str] = None     # None for bare references


@dataclass
class InferredRelationship:
    """Typed, directed relationship suggested by a foreign key."""
    type: RelationshipType
    source_entity: str
    target_entity: str
    foreign_key_column: str
    confidence: float
    properties: Optional[Dict[str, Any]] = None
    bidirectional: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            'type': self.type.value,
            'source_entity': self.source_entity,
            'target_entity': self.target_entity,
            'foreign_key_column': self.foreign_key_column,
            'confidence': self.confidence,
            'properties': self.properties,
            'bidirectional': self.bidirectional,
        }


# ============================================================================
# CYPHER QUERIES
# ============================================================================

@dataclass
class CypherQuery:
    """Query text plus its parameter map."""
    query: str
    params: Dict[str, Any] = field(default_factory=dict)

    def as_tuple(self):
        return self.query, self.params


@dataclass
class NodeQuery(CypherQuery):
    """Node CREATE/MERGE statement."""


@dataclass
class RelationshipQuery(CypherQuery):
    """Relationship CREATE/MERGE statement."""


# ============================================================================
# BATCH EXECUTION
# ============================================================================

@dataclass
class BatchItem:
    """One statement to run inside a chunk's transaction."""
    query: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchProgress:
    """Snapshot reported after each committed chunk."""
    current_batch: int          # 1-indexed
    total_batches: int
    items_processed: int        # cumulative
    total_items: int

    @property
    def fraction(self) -> float:
        """Share of items committed so far."""
        return self.items_processed / self.total_items if self.total_items else 1.0


@dataclass
class BatchResult:
    """Outcome of a fully successful execute_batch call."""
    succeeded: int
    total_batches: int


@dataclass
class ImportSummary:
    """Totals for one orchestrated import run."""
    dataset_id: Optional[str] = None
    nodes_written: Dict[str, int] = field(default_factory=dict)
    relationships_written: Dict[str, int] = field(default_factory=dict)
    skipped_rows: int = 0
    inferred: Dict[str, List[InferredRelationship]] = field(default_factory=dict)

    @property
    def total_nodes(self) -> int:
        return sum(self.nodes_written.values())

    @property
    def total_relationships(self) -> int:
        return sum(self.relationships_written.values())
