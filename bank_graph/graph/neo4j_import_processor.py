# -*- coding: utf-8 -*-
"""
Neo4j import orchestrator for tabular banking data.

Takes one table of rows per entity type (Person, BankAccount, Bank, Company,
Transaction), detects foreign-key columns from each table's headers, infers the
relationships they imply, and writes everything through the batch manager:
all node tables first, then all relationship tables, so that relationship
MATCH clauses find their endpoints. Optional checkpointing records each
completed step so a failed run can be resumed without repeating finished work.

Each inferred relationship is turned into one statement per row. The row's own
node is one endpoint (matched on its unique identifier), and the value in the
foreign-key column identifies the other endpoint. Rows with an empty
foreign-key cell produce no relationship. Endpoints whose entity type has no
registered unique identifier (e.g. a generic owner_id → Owner guess) are
skipped with a warning.

CSV cells have no null, so empty strings are read as None; header and key
whitespace is stripped before records are built.

Examples:
    # Run an import from the command line
    # python -m bank_graph.graph.neo4j_import_processor \\
    #     --data-dir data/bank_demo \\
    #     --dataset-id ds_001 \\
    #     --create-constraints

    # Python API usage
    import asyncio
    from bank_graph.graph.neo4j_client import Neo4jClient
    from bank_graph.graph.neo4j_import_processor import Neo4jImportProcessor

    client = Neo4jClient()
    processor = Neo4jImportProcessor(
        dataset_id='ds_001',
        executor=client.execute_write_transaction,
        batch_size=200
    )
    tables = processor.load_tables(Path('data/bank_demo'))
    summary = asyncio.run(processor.run_import(tables))

References:
    bank_graph.processing.fk_detector: header-based foreign key detection
    bank_graph.processing.relationship_inference: domain rule table
    bank_graph.graph.batch_manager: chunked transactional writes
"""
# Standard library
import argparse
import asyncio
import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set
import sys

# Third-party
from tqdm import tqdm

# Local
from bank_graph.cypher.node_generator import generate_node_query
from bank_graph.cypher.relationship_generator import generate_relationship_query
from bank_graph.cypher.utils import UNIQUE_IDENTIFIERS
from bank_graph.cypher.validators import validate_label
from bank_graph.graph.batch_manager import WriteExecutor, batch_options_from_config, execute_batch
from bank_graph.processing.fk_detector import CustomPattern, detect_foreign_keys
from bank_graph.processing.relationship_inference import (
    generate_batch_relationship_cypher, infer_relationships, normalize_entity
)
from bank_graph.utils import config
from bank_graph.utils.dataclasses import (
    ImportSummary, InferredRelationship, NodeQuery, RelationshipQuery
)
from bank_graph.utils.errors import MissingIdentifierError, MissingUniqueIdentifierError
from bank_graph.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

# Normalized inference names back to node labels
ENTITY_LABELS: Mapping[str, str] = {'Account': 'BankAccount'}

Rows = Sequence[Mapping[str, Any]]


def entity_label(entity: str) -> str:
    """Node label for a normalized entity name ('Account' -> 'BankAccount')."""
    return ENTITY_LABELS.get(entity, entity)


def clean_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Strip keys and turn empty CSV cells into None."""
    cleaned = {}
    for key, value in row.items():
        if key is None:
            continue  # overflow cells from csv.DictReader
        cleaned[key.strip()] = None if value == '' else value
    return cleaned


def table_headers(rows: Rows) -> List[str]:
    """Union of row keys in first-seen order."""
    headers: Dict[str, None] = {}
    for row in rows:
        for key in row:
            if key is not None:
                headers.setdefault(key, None)
    return list(headers)


class Neo4jImportProcessor:
    """
    Orchestrates a complete table import with optional checkpointing.

    Handles:
    - Loading one CSV per entity type
    - Foreign key detection and relationship inference per table
    - Node then relationship writes through execute_batch
    - Checkpoint management for resume capability
    """

    def __init__(self, dataset_id: Optional[str] = None,
                 executor: Optional[WriteExecutor] = None,
                 batch_size: Optional[int] = None,
                 max_retries: Optional[int] = None,
                 use_merge: Optional[bool] = None,
                 min_confidence: Optional[float] = None,
                 custom_patterns: Optional[Iterable[CustomPattern]] = None,
                 checkpoint_dir: Optional[Path] = None,
                 force_restart: bool = False,
                 show_progress: bool = True):
        """
        Initialize processor.

        Args:
            dataset_id: Namespace written to every node and relationship
            executor: Transactional write executor (default: shared client)
            batch_size: Statements per transaction (default: IMPORT_CONFIG)
            max_retries: Retries per chunk (default: IMPORT_CONFIG)
            use_merge: MERGE instead of CREATE (default: IMPORT_CONFIG)
            min_confidence: Foreign keys below this score are ignored
            custom_patterns: Extra foreign key rules
            checkpoint_dir: Directory for the checkpoint file; None disables it
            force_restart: Ignore an existing checkpoint
            show_progress: Display tqdm progress bars
        """
        self.dataset_id = dataset_id
        self.executor = executor
        self.batch_options = batch_options_from_config({
            'batch_size': batch_size,
            'max_retries': max_retries,
        })
        self.use_merge = config.IMPORT_CONFIG['use_merge'] if use_merge is None else use_merge
        self.min_confidence = (config.IMPORT_CONFIG['min_fk_confidence']
                               if min_confidence is None else min_confidence)
        self.custom_patterns = list(custom_patterns or [])
        self.show_progress = show_progress

        self.checkpoint_file: Optional[Path] = None
        self.completed_steps: Set[str] = set()
        if checkpoint_dir is not None:
            self.checkpoint_file = Path(checkpoint_dir) / f"import_checkpoint_{dataset_id or 'default'}.json"
            if not force_restart and self.checkpoint_file.exists():
                with open(self.checkpoint_file, 'r', encoding='utf-8') as f:
                    checkpoint = json.load(f)
                self.completed_steps = set(checkpoint.get('completed_steps', []))
                logger.info(f"Loaded checkpoint: {len(self.completed_steps)} steps completed")
            else:
                logger.info("Starting fresh import (no checkpoint)")

    # ------------------------------------------------------------------
    # Checkpointing
    # ------------------------------------------------------------------

    def mark_completed(self, step: str):
        """Mark a step as completed in checkpoint (no-op without checkpoint_dir)."""
        if self.checkpoint_file is None:
            return
        self.completed_steps.add(step)
        self.checkpoint_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.checkpoint_file, 'w', encoding='utf-8') as f:
            json.dump({'completed_steps': sorted(self.completed_steps)}, f, indent=2)
        logger.debug(f"Checkpoint: {step} completed")

    def is_completed(self, step: str) -> bool:
        """Check if step already completed."""
        return step in self.completed_steps

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @staticmethod
    def load_csv(path: Path) -> List[Dict[str, Any]]:
        """Load CSV with UTF-8-sig encoding (handles BOM)."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Required file not found: {path}")

        with open(path, 'r', encoding='utf-8-sig', newline='') as f:
            data = list(csv.DictReader(f))

        logger.info(f"Loaded {len(data)} rows from {path.name}")
        return data

    def load_tables(self, data_dir: Path) -> Dict[str, List[Dict[str, Any]]]:
        """
        Load every <EntityType>.csv in data_dir.

        Files whose stem is not a valid label are ignored with a warning.
        """
        data_dir = Path(data_dir)
        if not data_dir.is_dir():
            raise FileNotFoundError(f"Data directory not found: {data_dir}")

        tables = {}
        for path in sorted(data_dir.glob('*.csv')):
            entity_type = entity_label(path.stem)
            try:
                validate_label(entity_type)
            except ValueError:
                logger.warning(f"Skipping {path.name}: file name is not a valid entity label")
                continue
            tables[entity_type] = self.load_csv(path)
        return tables

    # ------------------------------------------------------------------
    # Preparation
    # ------------------------------------------------------------------

    def analyze_table(self, entity_type: str, headers: Sequence[str]) -> List[InferredRelationship]:
        """Detect foreign keys in headers and infer the table's relationships."""
        foreign_keys = detect_foreign_keys(
            headers,
            custom_patterns=self.custom_patterns,
            min_confidence=self.min_confidence,
        )
        # A table's own identifier is not a reference
        own_id = UNIQUE_IDENTIFIERS.get(entity_type)
        foreign_keys = [fk for fk in foreign_keys if fk.column_name.strip() != own_id]

        relationships = infer_relationships(foreign_keys, entity_type)
        logger.info(
            f"{entity_type}: {len(foreign_keys)} foreign keys, "
            f"{len(relationships)} relationships inferred"
        )
        return relationships

    def prepare_nodes(self, entity_type: str, rows: Rows, summary: ImportSummary) -> List[NodeQuery]:
        """Build one node statement per row; rows without an identifier are skipped."""
        if self.use_merge and entity_type not in UNIQUE_IDENTIFIERS:
            logger.warning(f"Skipping {len(rows)} {entity_type} rows: no unique identifier registered")
            summary.skipped_rows += len(rows)
            return []

        queries = []
        skipped = 0
        for row in rows:
            try:
                queries.append(generate_node_query(
                    entity_type, clean_row(row), merge=self.use_merge, dataset_id=self.dataset_id
                ))
            except MissingUniqueIdentifierError as e:
                skipped += 1
                logger.debug(f"Skipping row: {e}")

        if skipped:
            logger.warning(f"{entity_type}: skipped {skipped} rows without {UNIQUE_IDENTIFIERS[entity_type]}")
            summary.skipped_rows += skipped
        return queries

    def prepare_relationships(self, entity_type: str, rows: Rows,
                              relationships: Sequence[InferredRelationship]) -> List[RelationshipQuery]:
        """
        Build relationship statements for every (relationship, row) pair.

        The row is the source when the relationship's source entity is the
        row's entity, otherwise the target; the foreign-key value identifies
        the other endpoint.
        """
        row_entity = normalize_entity(entity_type)
        row_id_field = UNIQUE_IDENTIFIERS.get(entity_type)
        if row_id_field is None:
            return []

        queries = []
        for rel in relationships:
            if rel.source_entity == row_entity:
                other = rel.target_entity
                row_is_source = True
            elif rel.target_entity == row_entity:
                other = rel.source_entity
                row_is_source = False
            else:
                logger.debug(f"{rel.type.value} does not involve {row_entity}, skipping")
                continue

            other_label = entity_label(other)
            other_id_field = UNIQUE_IDENTIFIERS.get(other_label)
            if other_id_field is None:
                logger.warning(
                    f"{entity_type}.{rel.foreign_key_column.strip()}: no unique identifier "
                    f"for {other_label}, relationship skipped"
                )
                continue

            column = rel.foreign_key_column.strip()
            properties = {'confidence': rel.confidence, 'foreign_key_column': column}
            for raw in rows:
                row = clean_row(raw)
                fk_value = row.get(column)
                row_id = row.get(row_id_field)
                if fk_value is None or row_id is None:
                    continue

                row_node = {'entityType': entity_type, row_id_field: row_id}
                other_node = {'entityType': other_label, other_id_field: fk_value}
                source, target = (row_node, other_node) if row_is_source else (other_node, row_node)
                try:
                    queries.append(generate_relationship_query(
                        rel.type.value, source, target,
                        merge=self.use_merge,
                        dataset_id=self.dataset_id,
                        properties=properties,
                    ))
                except MissingIdentifierError as e:
                    logger.debug(f"Skipping row: {e}")
        return queries

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def import_queries(self, queries: Sequence[Any], desc: str) -> int:
        """
        Write statements through execute_batch with a progress bar.

        Returns:
            Number of statements committed
        """
        if not queries:
            logger.warning(f"{desc}: No data to import")
            return 0

        with tqdm(total=len(queries), desc=desc, disable=not self.show_progress) as pbar:
            def on_progress(progress):
                pbar.update(progress.items_processed - pbar.n)

            result = await execute_batch(
                queries,
                executor=self.executor,
                on_progress=on_progress,
                **self.batch_options
            )

        logger.info(f"✓ {desc}: {result.succeeded} statements in {result.total_batches} batches")
        return result.succeeded

    async def run_import(self, tables: Mapping[str, Rows],
                         headers: Optional[Mapping[str, Sequence[str]]] = None,
                         create_constraints=None) -> ImportSummary:
        """
        Execute complete import process.

        Args:
            tables: Rows per entity type, e.g. {'Person': [...], 'BankAccount': [...]}
            headers: Optional headers per table (default: keys of the rows)
            create_constraints: Optional async callable run once before any write

        Returns:
            ImportSummary
        """
        summary = ImportSummary(dataset_id=self.dataset_id)
        headers = headers or {}

        if create_constraints is not None:
            if not self.is_completed('constraints'):
                await create_constraints()
                self.mark_completed('constraints')
            else:
                logger.info("Constraints already created (checkpoint)")

        for entity_type in tables:
            validate_label(entity_type)

        # ============================================================
        # PHASE 1: NODES
        # ============================================================

        logger.info("\n=== PHASE 1: IMPORTING NODES ===")
        for entity_type, rows in tables.items():
            step = f'nodes_{entity_type}'
            if self.is_completed(step):
                logger.info(f"{entity_type} nodes already imported (checkpoint)")
                continue
            queries = self.prepare_nodes(entity_type, rows, summary)
            summary.nodes_written[entity_type] = await self.import_queries(queries, f"{entity_type} nodes")
            self.mark_completed(step)

        # ============================================================
        # PHASE 2: RELATIONSHIPS
        # ============================================================

        logger.info("\n=== PHASE 2: IMPORTING RELATIONSHIPS ===")
        for entity_type, rows in tables.items():
            relationships = self.analyze_table(
                entity_type, headers.get(entity_type) or table_headers(rows)
            )
            summary.inferred[entity_type] = relationships

            step = f'rels_{entity_type}'
            if self.is_completed(step):
                logger.info(f"{entity_type} relationships already imported (checkpoint)")
                continue
            queries = self.prepare_relationships(entity_type, rows, relationships)
            summary.relationships_written[entity_type] = await self.import_queries(
                queries, f"{entity_type} relationships"
            )
            self.mark_completed(step)

        logger.info(
            f"\n=== IMPORT COMPLETE === {summary.total_nodes} nodes, "
            f"{summary.total_relationships} relationships, {summary.skipped_rows} rows skipped"
        )
        return summary

    def describe(self, tables: Mapping[str, Rows]) -> str:
        """Inferred relationships per table as Cypher comment blocks (dry run)."""
        blocks = []
        for entity_type, rows in tables.items():
            relationships = self.analyze_table(entity_type, table_headers(rows))
            block = generate_batch_relationship_cypher(relationships)
            blocks.append(f"// {entity_type}: {len(rows)} rows\n" + (block or "// (no relationships)"))
        return '\n\n'.join(blocks)


# ============================================================================
# CLI
# ============================================================================

async def _run_cli(args, tables) -> ImportSummary:
    from bank_graph.graph.neo4j_client import Neo4jClient

    async with Neo4jClient(args.uri, args.user, args.password, database=args.database) as client:
        if not await client.health_check():
            raise ConnectionError(f"Neo4j at {client.uri} is not reachable")

        if args.dataset_id and await client.dataset_exists(args.dataset_id):
            logger.info(f"Dataset {args.dataset_id} already present; existing nodes will be updated")

        processor = Neo4jImportProcessor(
            dataset_id=args.dataset_id,
            executor=client.execute_write_transaction,
            batch_size=args.batch_size,
            max_retries=args.max_retries,
            use_merge=not args.create,
            min_confidence=args.min_confidence,
            checkpoint_dir=args.checkpoint_dir,
            force_restart=args.force_restart,
        )
        return await processor.run_import(
            tables,
            create_constraints=client.create_constraints if args.create_constraints else None,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Import banking CSV tables into Neo4j with inferred relationships'
    )
    parser.add_argument('--uri', default=config.NEO4J_URI,
                        help='Neo4j URI (default: NEO4J_URI env var)')
    parser.add_argument('--user', default=config.NEO4J_USER or 'neo4j',
                        help='Neo4j username (default: NEO4J_USER env var or "neo4j")')
    parser.add_argument('--password', default=config.NEO4J_PASSWORD,
                        help='Neo4j password (default: NEO4J_PASSWORD env var)')
    parser.add_argument('--database', default=config.NEO4J_DATABASE,
                        help='Neo4j database (default: NEO4J_DATABASE env var or "neo4j")')
    parser.add_argument('--data-dir', type=Path, default=config.DATA_PATH,
                        help='Directory with one <EntityType>.csv per table')
    parser.add_argument('--dataset-id', default=None,
                        help='Namespace written as dataset_id on every node and relationship')
    parser.add_argument('--batch-size', type=int, default=None,
                        help=f"Statements per transaction (default: {config.IMPORT_CONFIG['batch_size']})")
    parser.add_argument('--max-retries', type=int, default=None,
                        help=f"Retries per failed batch (default: {config.IMPORT_CONFIG['max_retries']})")
    parser.add_argument('--min-confidence', type=float, default=None,
                        help='Ignore foreign keys scoring below this value')
    parser.add_argument('--create', action='store_true',
                        help='Use CREATE instead of MERGE (duplicates on re-import)')
    parser.add_argument('--create-constraints', action='store_true',
                        help='Create uniqueness constraints before importing')
    parser.add_argument('--checkpoint-dir', type=Path, default=None,
                        help='Enable checkpointing in this directory')
    parser.add_argument('--force-restart', action='store_true',
                        help='Ignore existing checkpoint and restart from beginning')
    parser.add_argument('--dry-run', action='store_true',
                        help='Print inferred relationships without connecting to Neo4j')
    parser.add_argument('--log-file', default=None, help='Also write logs to this file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for table import."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=logging.DEBUG if (args.verbose or config.DEBUG_MODE) else logging.INFO,
        log_file=args.log_file,
    )

    processor = Neo4jImportProcessor(dataset_id=args.dataset_id, show_progress=False)
    tables = processor.load_tables(args.data_dir)
    if not tables:
        logger.error(f"No <EntityType>.csv files found in {args.data_dir}")
        return 1

    if args.dry_run:
        print(processor.describe(tables))
        return 0

    if not args.uri or not args.password:
        parser.error("--uri and --password required (or set NEO4J_URI and NEO4J_PASSWORD env vars)")

    summary = asyncio.run(_run_cli(args, tables))
    print(f"Imported {summary.total_nodes} nodes and {summary.total_relationships} relationships")
    return 0


if __name__ == '__main__':
    sys.exit(main())
