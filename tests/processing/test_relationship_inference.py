# -*- coding: utf-8 -*-
"""
Tests

Tests cover:
    - Domain rules per row entity, including inverted directions
    - Alias normalization (BankAccount, Manager)
    - Generic fallback and skipped targets
    - Cypher rendering (parameterized and literal)
    - Comment summary for a list of relationships

"""
import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import modules under test
from bank_graph.processing.fk_detector import detect_foreign_keys
from bank_graph.processing.relationship_inference import (
    FALLBACK_PENALTY, generate_batch_relationship_cypher,
    generate_relationship_cypher, infer_relationships, normalize_entity
)
from bank_graph.utils.dataclasses import (
    ForeignKey, InferredRelationship, PatternType, RelationshipType
)
from bank_graph.utils.errors import InvalidIdentifierError, InvalidPropertyKeyError


# =============================================================================
# FIXTURES
# =============================================================================

def fk(column, target, confidence=0.95, pattern_type=PatternType.DOMAIN_SPECIFIC):
    return ForeignKey(column_name=column, confidence=confidence,
                      pattern_type=pattern_type, target_entity=target)


@pytest.fixture
def owns_relationship():
    return InferredRelationship(
        type=RelationshipType.OWNS,
        source_entity='Person',
        target_entity='Account',
        foreign_key_column='person_id',
        confidence=0.95,
    )


# =============================================================================
# DOMAIN RULES
# =============================================================================

class TestDomainRules:
    """Test the banking rule table."""

    def test_account_person_inverted(self):
        [rel] = infer_relationships([fk('person_id', 'Person')], 'Account')
        assert rel.type == RelationshipType.OWNS
        assert rel.source_entity == 'Person'
        assert rel.target_entity == 'Account'
        assert rel.foreign_key_column == 'person_id'
        assert rel.confidence == 0.95

    def test_account_company_inverted(self):
        [rel] = infer_relationships([fk('company_id', 'Company')], 'Account')
        assert (rel.type, rel.source_entity, rel.target_entity) == (RelationshipType.OWNS, 'Company', 'Account')

    def test_account_held_at_bank(self):
        [rel] = infer_relationships([fk('bank_id', 'Bank')], 'BankAccount')
        assert (rel.type, rel.source_entity, rel.target_entity) == (RelationshipType.HELD_AT, 'Account', 'Bank')

    def test_transaction_from(self):
        """The documented from_iban example."""
        result = infer_relationships([fk('from_iban', 'BankAccount', 0.9, PatternType.IBAN)], 'Transaction')
        assert [r.to_dict() for r in result] == [{
            'type': 'FROM',
            'source_entity': 'Transaction',
            'target_entity': 'Account',
            'foreign_key_column': 'from_iban',
            'confidence': 0.9,
            'properties': None,
            'bidirectional': False,
        }]

    def test_transaction_from_and_to(self):
        result = infer_relationships([
            fk('fromIban', 'BankAccount', 0.8, PatternType.IBAN),
            fk('to_iban', 'BankAccount', 0.9, PatternType.IBAN),
        ], 'Transaction')
        types = {r.type for r in result}
        assert types == {RelationshipType.FROM, RelationshipType.TO}
        assert all(r.target_entity == 'Account' for r in result)
        assert all(r.bidirectional is False for r in result)

    @pytest.mark.parametrize('column,target', [('parent_id', 'Person'), ('manager_id', 'Manager')])
    def test_reports_to(self, column, target):
        [rel] = infer_relationships([fk(column, target, 0.9)], 'Person')
        assert rel.type == RelationshipType.REPORTS_TO
        assert rel.source_entity == 'Person'
        assert rel.target_entity == 'Person'
        assert rel.foreign_key_column == column

    def test_person_owns_company(self):
        [rel] = infer_relationships([fk('company_id', 'Company')], 'Person')
        assert (rel.type, rel.source_entity, rel.target_entity) == (RelationshipType.OWNS, 'Person', 'Company')

    def test_person_owns_account(self):
        [rel] = infer_relationships([fk('account_id', 'BankAccount')], 'Person')
        assert (rel.type, rel.source_entity, rel.target_entity) == (RelationshipType.OWNS, 'Person', 'Account')

    def test_company_controlled_by_person(self):
        [rel] = infer_relationships([fk('person_id', 'Person')], 'Company')
        assert (rel.type, rel.source_entity, rel.target_entity) == (RelationshipType.CONTROLS, 'Person', 'Company')

    def test_account_id_in_transaction_context(self):
        [rel] = infer_relationships([fk('account_id', 'BankAccount')], 'Transaction')
        assert rel.source_entity == 'Transaction'
        assert rel.target_entity == 'Account'

    def test_original_column_name_kept(self):
        [rel] = infer_relationships([fk('  person_id  ', 'Person')], 'Account')
        assert rel.foreign_key_column == '  person_id  '
        assert rel.source_entity == 'Person'

    def test_detector_output_feeds_inference(self):
        fks = detect_foreign_keys(['transaction_id', 'from_iban', 'to_iban', 'amount'])
        fks = [key for key in fks if key.column_name != 'transaction_id']
        result = infer_relationships(fks, 'Transaction')
        assert sorted(r.type.value for r in result) == ['FROM', 'TO']


# =============================================================================
# FALLBACK
# =============================================================================

class TestFallback:
    """Test behavior when no domain rule matches."""

    def test_generic_owns_with_penalty(self):
        [rel] = infer_relationships([fk('owner_id', 'Owner', 0.9, PatternType.SUFFIX_ID)], 'Account')
        assert rel.type == RelationshipType.OWNS
        assert rel.source_entity == 'Account'
        assert rel.target_entity == 'Owner'
        assert rel.confidence == pytest.approx(0.9 * FALLBACK_PENALTY)

    def test_many_to_many_table(self):
        result = infer_relationships([fk('company_id', 'Company'), fk('person_id', 'Person')], 'CompanyPerson')
        assert len(result) >= 2

    @pytest.mark.parametrize('target', ['Reference', 'Unknown', None])
    def test_skipped_targets(self, target):
        assert infer_relationships([fk('ref_code', target, 0.5)], 'Account') == []

    def test_empty_input(self):
        assert infer_relationships([], 'Account') == []

    def test_sorted_by_confidence(self):
        result = infer_relationships([
            fk('ref_code', 'Reference', 0.5),
            fk('owner_id', 'Owner', 0.9),
            fk('person_id', 'Person', 0.95),
            fk('bank_id', 'Bank', 0.95),
        ], 'Account')
        confidences = [r.confidence for r in result]
        assert confidences == sorted(confidences, reverse=True)
        assert len(result) == 3
        for rel in result:
            assert 0.0 < rel.confidence <= 1.0

    def test_normalize_entity(self):
        assert normalize_entity('BankAccount') == 'Account'
        assert normalize_entity('Manager') == 'Person'
        assert normalize_entity('Bank') == 'Bank'
        assert normalize_entity(None) is None


# =============================================================================
# CYPHER RENDERING
# =============================================================================

class TestRelationshipCypher:
    """Test generate_relationship_cypher()."""

    def test_parameterized_by_default(self, owns_relationship):
        result = generate_relationship_cypher(owns_relationship, 'person123', 'acc456')

        assert result.query == (
            "MATCH (a:Person {id: $sourceId})\n"
            "MATCH (b:Account {id: $targetId})\n"
            "CREATE (a)-[r:OWNS {confidence: 0.95}]->(b)\n"
            "RETURN r"
        )
        assert result.params == {'sourceId': 'person123', 'targetId': 'acc456'}

    def test_merge(self, owns_relationship):
        result = generate_relationship_cypher(owns_relationship, 'a1', 'b1', use_merge=True)
        assert 'MERGE (a)-[r:OWNS' in result.query
        assert 'CREATE' not in result.query

    def test_properties_become_params(self):
        rel = InferredRelationship(
            type=RelationshipType.OWNS, source_entity='Person', target_entity='Company',
            foreign_key_column='company_id', confidence=0.95,
            properties={'ownership_percentage': 100, 'since': '2024-01-01'},
        )
        result = generate_relationship_cypher(rel, 'p1', 'c1')
        assert '{confidence: 0.95, ownership_percentage: $prop_ownership_percentage, since: $prop_since}' in result.query
        assert result.params['prop_ownership_percentage'] == 100
        assert result.params['prop_since'] == '2024-01-01'

    def test_literal_mode_escapes(self):
        rel = InferredRelationship(
            type=RelationshipType.OWNS, source_entity='Person', target_entity='Account',
            foreign_key_column='person_id', confidence=0.9,
            properties={'note': "O'Brien \\ co"},
        )
        result = generate_relationship_cypher(rel, "p'1", 'a1', use_parameters=False)
        assert result.params == {}
        assert "MATCH (a:Person {id: 'p\\'1'})" in result.query
        assert "note: 'O\\'Brien \\\\ co'" in result.query
        assert 'confidence: 0.9' in result.query
        assert '$' not in result.query

    def test_complex_property_types(self):
        rel = InferredRelationship(
            type=RelationshipType.OWNS, source_entity='Person', target_entity='Company',
            foreign_key_column='company_id', confidence=0.95,
            properties={'active': True, 'metadata': {'foo': 'bar'}, 'tags': ['shareholder', 'board-member']},
        )
        literal = generate_relationship_cypher(rel, 'p1', 'c1', use_parameters=False).query
        assert 'active: true' in literal
        assert "metadata: {foo: 'bar'}" in literal
        assert "tags: ['shareholder', 'board-member']" in literal

    def test_both_modes_share_text(self, owns_relationship):
        parameterized = generate_relationship_cypher(owns_relationship, 'p1', 'a1').query
        literal = generate_relationship_cypher(owns_relationship, 'p1', 'a1', use_parameters=False).query
        assert parameterized.replace('$sourceId', "'p1'").replace('$targetId', "'a1'") == literal

    def test_invalid_property_key(self):
        rel = InferredRelationship(
            type=RelationshipType.OWNS, source_entity='Person', target_entity='Account',
            foreign_key_column='person_id', confidence=0.9,
            properties={'bad key}]->(x) DELETE x //': 1},
        )
        with pytest.raises(InvalidPropertyKeyError, match=r'(?i)invalid.*property key'):
            generate_relationship_cypher(rel, 'p1', 'a1')

    def test_invalid_label(self, owns_relationship):
        owns_relationship.source_entity = 'Person) DETACH DELETE (a'
        with pytest.raises(InvalidIdentifierError, match=r'(?i)invalid.*label'):
            generate_relationship_cypher(owns_relationship, 'p1', 'a1')


class TestBatchSummary:
    """Test generate_batch_relationship_cypher()."""

    def test_summary_lists_types(self, owns_relationship):
        held_at = InferredRelationship(
            type=RelationshipType.HELD_AT, source_entity='Account', target_entity='Bank',
            foreign_key_column='bank_id', confidence=0.95,
        )
        summary = generate_batch_relationship_cypher([owns_relationship, held_at])

        assert 'OWNS' in summary
        assert 'HELD_AT' in summary
        assert all(line.startswith('//') for line in summary.splitlines())

    def test_empty(self):
        assert generate_batch_relationship_cypher([]) == ''

    def test_column_cannot_break_comment(self, owns_relationship):
        owns_relationship.foreign_key_column = 'person_id\nMATCH (n) DETACH DELETE n'
        summary = generate_batch_relationship_cypher([owns_relationship])
        assert all(line.startswith('//') for line in summary.splitlines())
