# -*- coding: utf-8 -*-
"""
Batched transactional execution with chunk-level retry.

Splits an ordered list of statements into chunks of at most batch_size and
writes them one chunk at a time. Every chunk is one write transaction: its
statements run in order on the same transaction handle and commit or roll back
together. Transaction methods of the neo4j driver are not concurrency safe, so
statements inside a chunk are awaited one by one. A failed chunk is retried as a whole with exponential
backoff (base_delay, 2x base_delay, 4x base_delay, ...). When the retries run
out, the last error is re-raised unchanged and nothing after that chunk runs;
chunks that already committed stay committed.

Chunks never overlap, so progress callbacks arrive in order and at most one
chunk of write work is in flight. Low-level transient errors are first retried
by the driver inside execute_write; the retries here cover the whole chunk.

Examples:
    import asyncio
    from bank_graph.graph.batch_manager import execute_batch

    items = [generate_node_query('Person', row, merge=True) for row in rows]
    result = asyncio.run(execute_batch(
        items,
        batch_size=100,
        on_progress=lambda p: print(f"{p.items_processed}/{p.total_items}")
    ))
    # BatchResult(succeeded=len(items), total_batches=ceil(len(items) / 100))

References:
    bank_graph.graph.neo4j_client.execute_write_transaction: default executor
"""
# Standard library
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

# Local
from bank_graph.utils.config import IMPORT_CONFIG
from bank_graph.utils.dataclasses import BatchItem, BatchProgress, BatchResult, CypherQuery
from bank_graph.utils.errors import InvalidArgumentError
from bank_graph.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 200
DEFAULT_MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.1  # seconds

WriteExecutor = Callable[[Callable[[Any], Awaitable[Any]]], Awaitable[Any]]
ProgressCallback = Callable[[BatchProgress], Any]
ItemLike = Union[BatchItem, CypherQuery, Tuple[str, Dict[str, Any]]]


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_batch_options(batch_size, max_retries):
    """Raise InvalidArgumentError for a malformed batch configuration."""
    if not _is_int(batch_size) or batch_size <= 0:
        raise InvalidArgumentError(f"batch_size must be a positive integer, got {batch_size!r}")
    if not _is_int(max_retries) or max_retries < 0:
        raise InvalidArgumentError(f"max_retries must be a non-negative integer, got {max_retries!r}")


def to_batch_item(item: ItemLike) -> BatchItem:
    """Accept BatchItem, NodeQuery/RelationshipQuery or a (query, params) tuple."""
    if isinstance(item, BatchItem):
        return item
    if isinstance(item, CypherQuery):
        return BatchItem(query=item.query, params=item.params)
    query, params = item
    return BatchItem(query=query, params=params or {})


def chunked(items: Sequence[BatchItem], size: int) -> List[Sequence[BatchItem]]:
    """Split items into consecutive chunks of at most size, preserving order."""
    return [items[i:i + size] for i in range(0, len(items), size)]


async def _run_chunk(executor: WriteExecutor, chunk: Sequence[BatchItem]):
    async def work(tx):
        results = []
        for item in chunk:
            results.append(await tx.run(item.query, item.params))
        return results

    return await executor(work)


async def execute_batch(items: Sequence[ItemLike],
                        executor: Optional[WriteExecutor] = None,
                        batch_size: int = DEFAULT_BATCH_SIZE,
                        max_retries: int = DEFAULT_MAX_RETRIES,
                        on_progress: Optional[ProgressCallback] = None,
                        base_delay: float = RETRY_BASE_DELAY) -> BatchResult:
    """
    Execute statements in sequential, transactional chunks.

    Args:
        items: Statements in execution order
        executor: Async transactional write executor ``executor(work)``;
            defaults to the shared Neo4j client
        batch_size: Maximum statements per transaction (positive int)
        max_retries: Extra attempts per chunk after the first (non-negative int)
        on_progress: Called with BatchProgress after each committed chunk
        base_delay: Seconds before the first retry; doubles each retry

    Returns:
        BatchResult with the number of statements committed and chunk count

    Raises:
        InvalidArgumentError: Invalid batch_size or max_retries (before any write)
        Exception: The last error of a chunk whose retries were exhausted
    """
    validate_batch_options(batch_size, max_retries)

    batch_items = [to_batch_item(item) for item in items]
    if not batch_items:
        return BatchResult(succeeded=0, total_batches=0)

    if executor is None:
        # Imported lazily so the module works without a configured database
        from bank_graph.graph.neo4j_client import execute_write_transaction
        executor = execute_write_transaction

    chunks = chunked(batch_items, batch_size)
    total_batches = len(chunks)
    total_items = len(batch_items)
    succeeded = 0

    for index, chunk in enumerate(chunks, 1):
        attempt = 0
        while True:
            try:
                await _run_chunk(executor, chunk)
                break
            except Exception as e:
                if attempt >= max_retries:
                    logger.error(
                        f"✗ Batch {index}/{total_batches} failed after {attempt + 1} attempts: {e}"
                    )
                    raise
                attempt += 1
                delay = base_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"Batch {index}/{total_batches} failed (attempt {attempt}/{max_retries + 1}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)

        succeeded += len(chunk)
        logger.debug(f"Batch {index}/{total_batches} committed ({succeeded}/{total_items})")
        if on_progress is not None:
            on_progress(BatchProgress(
                current_batch=index,
                total_batches=total_batches,
                items_processed=succeeded,
                total_items=total_items,
            ))

    return BatchResult(succeeded=succeeded, total_batches=total_batches)


def execute_batch_sync(items: Sequence[ItemLike], **kwargs) -> BatchResult:
    """Run execute_batch() to completion from synchronous code."""
    return asyncio.run(execute_batch(items, **kwargs))


def batch_options_from_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Batch keyword arguments from IMPORT_CONFIG, with optional overrides."""
    options = {
        'batch_size': IMPORT_CONFIG['batch_size'],
        'max_retries': IMPORT_CONFIG['max_retries'],
        'base_delay': IMPORT_CONFIG['retry_base_delay'],
    }
    options.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return options
