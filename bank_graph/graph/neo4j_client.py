# -*- coding: utf-8 -*-
"""
Async Neo4j client for banking graph imports.

Thin wrapper around the neo4j async driver. It owns connection settings, opens
one session per unit of work and runs it as a managed transaction, which gives
all-or-nothing commit plus the driver's own retry for transient errors. The
batch manager sits on top and adds chunk-level retries.

execute_write_transaction() is the transactional write executor consumed by
bank_graph.graph.batch_manager.execute_batch: it takes an async callback
``work(tx)`` and commits everything the callback runs, or nothing.

Examples:
    from bank_graph.graph.neo4j_client import Neo4jClient

    client = Neo4jClient()              # NEO4J_URI / NEO4J_USER / NEO4J_PASSWORD
    if await client.health_check():
        await client.create_constraints()
        exists = await client.dataset_exists("ds_001")
    await client.close()

References:
    neo4j Python driver: AsyncGraphDatabase, AsyncSession.execute_write
    bank_graph.cypher.utils.UNIQUE_IDENTIFIERS: one uniqueness constraint per entry
"""

# Standard library
from typing import Any, Awaitable, Callable, Dict, List, Optional

# Third-party
from neo4j import AsyncGraphDatabase

# Local
from bank_graph.cypher.utils import UNIQUE_IDENTIFIERS
from bank_graph.utils import config
from bank_graph.utils.logger import get_logger

logger = get_logger(__name__)

TransactionWork = Callable[[Any], Awaitable[Any]]

DATASET_EXISTS_QUERY = "MATCH (n {dataset_id: $datasetId}) RETURN count(n) > 0 AS exists LIMIT 1"


class Neo4jClient:
    """
    Async Neo4j connection with managed read/write transactions.

    Example:
        async with Neo4jClient(uri, user, password) as client:
            await client.execute_write_transaction(work)
    """

    def __init__(self, uri: Optional[str] = None, user: Optional[str] = None,
                 password: Optional[str] = None, database: Optional[str] = None,
                 driver=None, **driver_config):
        """
        Initialize Neo4j connection.

        Args:
            uri: Neo4j connection URI (default: NEO4J_URI)
            user: Username (default: NEO4J_USER or NEO4J_USERNAME)
            password: Database password (default: NEO4J_PASSWORD)
            database: Database name (default: NEO4J_DATABASE or "neo4j")
            driver: Pre-built async driver; skips driver construction
            **driver_config: Overrides for config.DRIVER_CONFIG

        Raises:
            ValueError: If no driver is given and a connection setting is missing
        """
        self.database = database or config.NEO4J_DATABASE
        if driver is not None:
            self.driver = driver
            self.uri = uri
            return

        self.uri, user, password = config.require_neo4j_settings(uri, user, password)
        settings = {**config.DRIVER_CONFIG, **driver_config}
        self.driver = AsyncGraphDatabase.driver(self.uri, auth=(user, password), **settings)
        logger.info(f"Connected to Neo4j at {self.uri} (database: {self.database})")

    async def close(self):
        """Close Neo4j driver connection."""
        await self.driver.close()
        logger.info("Neo4j connection closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def execute_write_transaction(self, work: TransactionWork) -> Any:
        """Run work(tx) in one managed write transaction and return its result."""
        async with self.driver.session(database=self.database) as session:
            return await session.execute_write(work)

    async def execute_read_transaction(self, work: TransactionWork) -> Any:
        """Run work(tx) in one managed read transaction and return its result."""
        async with self.driver.session(database=self.database) as session:
            return await session.execute_read(work)

    async def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None,
                            write: bool = False) -> List[Dict[str, Any]]:
        """
        Run a single query and collect its records as dicts.

        Args:
            query: Cypher text
            params: Query parameters
            write: Run in a write transaction instead of a read transaction
        """
        async def work(tx):
            result = await tx.run(query, params or {})
            return [record.data() async for record in result]

        if write:
            return await self.execute_write_transaction(work)
        return await self.execute_read_transaction(work)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Return True if the database answers RETURN 1."""
        try:
            records = await self.execute_query("RETURN 1 AS ok")
        except Exception as e:
            logger.error(f"✗ Neo4j health check failed: {e}")
            return False
        healthy = bool(records) and records[0].get('ok') == 1
        if healthy:
            logger.info("✓ Neo4j health check passed")
        return healthy

    async def create_constraints(self) -> int:
        """
        Create one uniqueness constraint and one dataset_id index per entity type.

        Constraints auto-create indexes for the identifier properties, so
        MERGE on them stays an index lookup.

        Returns:
            Number of statements executed
        """
        logger.info("Creating constraints and indexes...")

        statements = []
        for label, id_field in UNIQUE_IDENTIFIERS.items():
            name = label.lower()
            statements.append(
                f"CREATE CONSTRAINT {name}_{id_field} IF NOT EXISTS "
                f"FOR (n:{label}) REQUIRE n.{id_field} IS UNIQUE"
            )
            statements.append(
                f"CREATE INDEX {name}_dataset_id IF NOT EXISTS "
                f"FOR (n:{label}) ON (n.dataset_id)"
            )

        for statement in statements:
            await self.execute_query(statement, write=True)
            logger.debug(f"Created: {statement[:60]}...")

        logger.info(f"Created {len(UNIQUE_IDENTIFIERS)} constraints and {len(UNIQUE_IDENTIFIERS)} indexes")
        return len(statements)

    async def dataset_exists(self, dataset_id: str) -> bool:
        """Return True if any node carries the given dataset_id."""
        records = await self.execute_query(DATASET_EXISTS_QUERY, {'datasetId': dataset_id})
        return bool(records) and bool(records[0].get('exists'))


# ============================================================================
# SHARED CLIENT
# ============================================================================

_client: Optional[Neo4jClient] = None


def get_client() -> Neo4jClient:
    """Return the process-wide client, creating it from the environment on first use."""
    global _client
    if _client is None:
        _client = Neo4jClient()
    return _client


async def close_client():
    """Close and forget the process-wide client, if one was created."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None


async def execute_write_transaction(work: TransactionWork) -> Any:
    """Default transactional write executor backed by the shared client."""
    return await get_client().execute_write_transaction(work)
