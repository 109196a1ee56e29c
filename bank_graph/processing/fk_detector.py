# -*- coding: utf-8 -*-
"""
Foreign key detection from column headers.

Scores every header of a table against an ordered table of regex rules and
reports the columns that look like references to another entity. Detection is
purely name-based: no cell values are inspected, so it runs before any row is
parsed and costs nothing on large files.

Rules are tried in table order and every matching rule is collected; the match
with the highest confidence wins and, on equal confidence, the rule that comes
first in the table wins. Built-in rules always precede caller-supplied ones, so
a custom rule can only take over a column by scoring strictly higher.

Tiers (built-in):
    domain-specific   bank_id, person_id, company_id, account_id,
                      transaction_id (0.95), parent_id (0.90)
    IBAN              from_iban, to_iban, *_iban (0.90); fromIban, toIban,
                      *Iban (0.80)
    generic ids       *_id (0.90, PascalCase prefix), *Id (0.75)
    reference         anything containing ref / reference (0.50, no target)

Examples:
    from bank_graph.processing.fk_detector import detect_foreign_keys, CustomPattern

    fks = detect_foreign_keys(['person_id', 'bank_id', 'name'])
    # [ForeignKey('person_id', 0.95, DOMAIN_SPECIFIC, 'Person'),
    #  ForeignKey('bank_id', 0.95, DOMAIN_SPECIFIC, 'Bank')]

    fks = detect_foreign_keys(
        ['customer_no'],
        custom_patterns=[CustomPattern(r'^customer_no$', 0.85, target_entity='Person')]
    )

References:
    bank_graph.processing.relationship_inference: consumes the detected keys
"""
# Standard library
import logging
import re
from dataclasses import dataclass, replace
from re import Match, Pattern
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

# Local
from bank_graph.utils.dataclasses import ForeignKey, PatternType
from bank_graph.utils.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# CONFIDENCE LEVELS
# ============================================================================

VERY_HIGH = 0.95    # exact domain columns
HIGH = 0.90         # *_id, *_iban
MEDIUM_HIGH = 0.80  # camelCase IBAN variants
MEDIUM = 0.75       # camelCase *Id
LOW = 0.50          # ref / reference


def snake_to_pascal(value: str) -> str:
    """'bank_account' -> 'BankAccount'."""
    return ''.join(part[:1].upper() + part[1:].lower() for part in value.split('_'))


def capitalize_first(value: str) -> str:
    """'bankAccount' -> 'BankAccount'."""
    return value[:1].upper() + value[1:]


# ============================================================================
# RULES
# ============================================================================

@dataclass(frozen=True)
class PatternRule:
    """
    One detection rule.

    extract_entity receives the regex match for the trimmed header and returns
    the target entity; when set it overrides target_entity.
    """
    pattern: Pattern
    confidence: float
    pattern_type: PatternType
    target_entity: Optional[str] = None
    extract_entity: Optional[Callable[[Match], str]] = None

    def with_case_sensitivity(self, case_insensitive: bool) -> 'PatternRule':
        """Return a copy whose regex has IGNORECASE set or cleared."""
        has_flag = bool(self.pattern.flags & re.IGNORECASE)
        if has_flag == case_insensitive:
            return self
        flags = self.pattern.flags | re.IGNORECASE if case_insensitive \
            else self.pattern.flags & ~re.IGNORECASE
        return replace(self, pattern=re.compile(self.pattern.pattern, flags))

    def apply(self, column: str) -> Optional[Tuple[float, Optional[str], PatternType]]:
        """Return (confidence, target_entity, pattern_type) if the rule matches."""
        match = self.pattern.search(column)
        if match is None:
            return None
        target = self.extract_entity(match) if self.extract_entity else self.target_entity
        return self.confidence, target, self.pattern_type


@dataclass(frozen=True)
class CustomPattern:
    """
    Caller-supplied detection rule.

    Args:
        pattern: Regex string or compiled pattern, tested with search()
        confidence: Score in [0, 1]
        target_entity: Fixed target entity
        extract_entity: Callable taking the trimmed column name and returning
            the target entity; overrides target_entity
    """
    pattern: Union[str, Pattern]
    confidence: float
    target_entity: Optional[str] = None
    extract_entity: Optional[Callable[[str], str]] = None

    def to_rule(self) -> PatternRule:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Custom pattern confidence must be within [0, 1], got {self.confidence}")
        compiled = self.pattern if isinstance(self.pattern, re.Pattern) else re.compile(self.pattern)
        extractor = None
        if self.extract_entity is not None:
            extract = self.extract_entity
            extractor = lambda match: extract(match.string)
        return PatternRule(
            pattern=compiled,
            confidence=self.confidence,
            pattern_type=PatternType.CUSTOM,
            target_entity=self.target_entity,
            extract_entity=extractor,
        )


def _rule(pattern: str, confidence: float, pattern_type: PatternType,
          target_entity: Optional[str] = None,
          extract_entity: Optional[Callable[[Match], str]] = None,
          ignore_case: bool = True) -> PatternRule:
    flags = re.ASCII | (re.IGNORECASE if ignore_case else 0)
    return PatternRule(re.compile(pattern, flags), confidence, pattern_type,
                       target_entity, extract_entity)


_DOMAIN = PatternType.DOMAIN_SPECIFIC
_IBAN = PatternType.IBAN

# Ordered most specific first; order is the tie-break on equal confidence
DEFAULT_PATTERNS: Tuple[PatternRule, ...] = (
    _rule(r'^bank_id$', VERY_HIGH, _DOMAIN, 'Bank'),
    _rule(r'^person_id$', VERY_HIGH, _DOMAIN, 'Person'),
    _rule(r'^company_id$', VERY_HIGH, _DOMAIN, 'Company'),
    _rule(r'^account_id$', VERY_HIGH, _DOMAIN, 'BankAccount'),
    _rule(r'^transaction_id$', VERY_HIGH, _DOMAIN, 'Transaction'),
    _rule(r'^parent_id$', HIGH, _DOMAIN, 'Person'),

    _rule(r'^from_iban$', HIGH, _IBAN, 'BankAccount'),
    _rule(r'^to_iban$', HIGH, _IBAN, 'BankAccount'),
    _rule(r'.*_iban$', HIGH, _IBAN, 'BankAccount'),

    # camelCase variants are case-sensitive unless case_insensitive is set
    _rule(r'^fromIban$', MEDIUM_HIGH, _IBAN, 'BankAccount', ignore_case=False),
    _rule(r'^toIban$', MEDIUM_HIGH, _IBAN, 'BankAccount', ignore_case=False),
    _rule(r'.*Iban$', MEDIUM_HIGH, _IBAN, 'BankAccount', ignore_case=False),

    _rule(r'^(\w+)_id$', HIGH, PatternType.SUFFIX_ID,
          extract_entity=lambda match: snake_to_pascal(match.group(1))),
    _rule(r'^(\w+)Id$', MEDIUM, PatternType.SUFFIX_ID_CAMEL,
          extract_entity=lambda match: capitalize_first(match.group(1)),
          ignore_case=False),

    _rule(r'.*_?ref(?:_|erence)?.*$', LOW, PatternType.REFERENCE),
)


def build_rules(custom_patterns: Optional[Iterable[CustomPattern]] = None,
                case_insensitive: bool = True,
                base_rules: Sequence[PatternRule] = DEFAULT_PATTERNS) -> Tuple[PatternRule, ...]:
    """Concatenate base and custom rules and apply the case-sensitivity setting."""
    rules = list(base_rules)
    rules.extend(custom.to_rule() for custom in (custom_patterns or ()))
    return tuple(rule.with_case_sensitivity(case_insensitive) for rule in rules)


# ============================================================================
# DETECTION
# ============================================================================

def detect_foreign_keys(headers: Iterable[str],
                        custom_patterns: Optional[Iterable[CustomPattern]] = None,
                        min_confidence: float = 0.0,
                        case_insensitive: bool = True,
                        base_rules: Sequence[PatternRule] = DEFAULT_PATTERNS) -> List[ForeignKey]:
    """
    Detect foreign-key columns in a list of headers.

    Args:
        headers: Column headers as read from the file (may carry whitespace)
        custom_patterns: Extra rules, evaluated after the built-ins
        min_confidence: Drop detections scoring below this value
        case_insensitive: Match every rule with or without IGNORECASE
        base_rules: Rule table replacing the built-ins (tests, other domains)

    Returns:
        Detected keys sorted by confidence, highest first. column_name is the
        original header text; blank headers never produce an entry.

    Raises:
        ValueError: If min_confidence or a custom confidence is outside [0, 1]
    """
    if not 0.0 <= min_confidence <= 1.0:
        raise ValueError(f"min_confidence must be within [0, 1], got {min_confidence}")

    rules = build_rules(custom_patterns, case_insensitive, base_rules)
    detected: List[ForeignKey] = []

    for header in headers:
        if not isinstance(header, str) or not header.strip():
            continue
        column = header.strip()

        best = None
        for rule in rules:
            result = rule.apply(column)
            # Strict comparison keeps the earliest rule on ties
            if result is not None and (best is None or result[0] > best[0]):
                best = result

        if best is None:
            continue

        confidence, target_entity, pattern_type = best
        detected.append(ForeignKey(
            column_name=header,
            confidence=confidence,
            pattern_type=pattern_type,
            target_entity=target_entity,
        ))

    filtered = [fk for fk in detected if fk.confidence >= min_confidence]
    filtered.sort(key=lambda fk: fk.confidence, reverse=True)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            f"Detected {len(filtered)} foreign keys: "
            + ', '.join(f"{fk.column_name.strip()}→{fk.target_entity} ({fk.confidence:.2f})" for fk in filtered)
        )
    return filtered
