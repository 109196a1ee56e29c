# -*- coding: utf-8 -*-
"""
Banking Graph Import Runner

Imports a directory of banking CSV tables (one <EntityType>.csv per entity:
Person.csv, BankAccount.csv, Bank.csv, Company.csv, Transaction.csv) into Neo4j.
Foreign-key columns are detected from the headers, relationships are inferred
from them, and nodes and relationships are written in batched transactions.

Modes:
    --dry-run              Print inferred relationships per table and exit
    --create-constraints   Create uniqueness constraints before writing
    --checkpoint-dir       Resume an interrupted import

Examples:
    # Preview what would be imported
    python scripts/run_import.py --data-dir data/bank_demo --dry-run

    # Full import into a namespaced dataset
    python scripts/run_import.py --data-dir data/bank_demo --dataset-id ds_001 \\
        --create-constraints --checkpoint-dir checkpoints

References:
    bank_graph.graph.neo4j_import_processor: orchestrator and argument parsing
"""

import sys
from pathlib import Path

# Project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bank_graph.graph.neo4j_import_processor import main


if __name__ == '__main__':
    sys.exit(main())
