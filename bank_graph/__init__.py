# -*- coding: utf-8 -*-
"""
Banking graph import package.

Top-level package for turning tabular banking records (Person, BankAccount, Bank,
Company, Transaction) into a Neo4j property graph: foreign-key detection,
relationship inference, Cypher generation, and batched transactional writes.
"""

__version__ = "0.1.0"
