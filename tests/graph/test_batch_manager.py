# -*- coding: utf-8 -*-
"""
Module: test_batch_manager.py
Package: tests.graph
Purpose: Unit tests for batched transactional execution

Tests:
- Argument validation before any write
- Chunking, ordering and progress reporting
- Statements awaited in order inside one transaction
- Chunk retry with exponential backoff and terminal failure
"""

# Standard library
import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

# Project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Third-party
import pytest

# Local
from bank_graph.graph.batch_manager import (
    batch_options_from_config,
    chunked,
    execute_batch,
    execute_batch_sync,
    to_batch_item,
)
from bank_graph.utils.dataclasses import BatchItem, BatchResult, NodeQuery
from bank_graph.utils.errors import InvalidArgumentError


# ============================================================================
# FAKES
# ============================================================================

class FakeTransaction:
    """Records statements; buffered writes become visible only on commit."""

    def __init__(self, store, delay=0.0):
        self.store = store
        self.delay = delay
        self.pending = []

    async def run(self, query, params):
        if self.store.in_flight:
            raise RuntimeError("transaction methods are not concurrency safe")
        self.store.in_flight += 1
        self.store.max_in_flight = max(self.store.max_in_flight, self.store.in_flight)
        if self.delay:
            await asyncio.sleep(self.delay)
        self.store.in_flight -= 1
        self.pending.append((query, params))


class FakeExecutor:
    """
    Transactional write executor double.

    fail_on maps a 1-based call number to the exception raised after the
    work ran; the transaction is then rolled back.
    """

    def __init__(self, fail_on=None, fail_always_after=None, delay=0.0):
        self.calls = 0
        self.committed = []
        self.fail_on = fail_on or {}
        self.fail_always_after = fail_always_after
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, work):
        self.calls += 1
        tx = FakeTransaction(self, self.delay)
        result = await work(tx)
        error = self.fail_on.get(self.calls)
        if error is None and self.fail_always_after is not None and len(self.committed) >= self.fail_always_after:
            error = ConnectionError("Neo4j unavailable")
        if error is not None:
            raise error
        self.committed.append(tx.pending)
        return result


def make_items(count):
    return [BatchItem(query=f"CREATE (n:Item {{n: $n}})", params={'n': i}) for i in range(count)]


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def no_sleep():
    with patch('bank_graph.graph.batch_manager.asyncio.sleep', new=AsyncMock()) as mocked:
        yield mocked


# ============================================================================
# VALIDATION
# ============================================================================

class TestValidation:
    """Test argument validation."""

    @pytest.mark.parametrize('batch_size', [0, -1, 1.5, '10', True, None])
    def test_invalid_batch_size(self, batch_size):
        executor = FakeExecutor()
        with pytest.raises(InvalidArgumentError, match='batch_size must be a positive integer'):
            run(execute_batch(make_items(3), executor=executor, batch_size=batch_size))
        assert executor.calls == 0

    @pytest.mark.parametrize('max_retries', [-1, 2.0, False, None])
    def test_invalid_max_retries(self, max_retries):
        executor = FakeExecutor()
        with pytest.raises(InvalidArgumentError, match='max_retries must be a non-negative integer'):
            run(execute_batch(make_items(3), executor=executor, max_retries=max_retries))
        assert executor.calls == 0

    def test_validation_before_empty_shortcut(self):
        with pytest.raises(InvalidArgumentError):
            run(execute_batch([], executor=FakeExecutor(), batch_size=0))


# ============================================================================
# CHUNKING AND PROGRESS
# ============================================================================

class TestChunking:
    """Test chunk boundaries and progress callbacks."""

    def test_empty_input(self):
        executor = FakeExecutor()
        result = run(execute_batch([], executor=executor))
        assert result == BatchResult(succeeded=0, total_batches=0)
        assert executor.calls == 0

    def test_default_batch_is_one_transaction(self):
        executor = FakeExecutor()
        result = run(execute_batch(make_items(200), executor=executor))
        assert executor.calls == 1
        assert result == BatchResult(succeeded=200, total_batches=1)

    def test_progress_per_chunk(self):
        executor = FakeExecutor()
        progress = []
        result = run(execute_batch(make_items(500), executor=executor, batch_size=100,
                                   on_progress=progress.append))

        assert result == BatchResult(succeeded=500, total_batches=5)
        assert executor.calls == 5
        assert [p.items_processed for p in progress] == [100, 200, 300, 400, 500]
        assert [p.current_batch for p in progress] == [1, 2, 3, 4, 5]
        assert all(p.total_batches == 5 and p.total_items == 500 for p in progress)
        assert progress[-1].fraction == 1.0

    def test_last_chunk_smaller(self):
        executor = FakeExecutor()
        result = run(execute_batch(make_items(250), executor=executor, batch_size=100))
        assert result.total_batches == 3
        assert [len(chunk) for chunk in executor.committed] == [100, 100, 50]

    def test_order_preserved(self):
        executor = FakeExecutor()
        run(execute_batch(make_items(7), executor=executor, batch_size=3))
        assert [[p['n'] for _, p in chunk] for chunk in executor.committed] == [[0, 1, 2], [3, 4, 5], [6]]

    def test_statements_awaited_one_at_a_time(self):
        executor = FakeExecutor(delay=0.01)
        result = run(execute_batch(make_items(10), executor=executor, batch_size=10))
        assert result == BatchResult(succeeded=10, total_batches=1)
        assert executor.calls == 1
        assert executor.max_in_flight == 1
        assert [p['n'] for _, p in executor.committed[0]] == list(range(10))

    def test_accepts_queries_and_tuples(self):
        executor = FakeExecutor()
        items = [NodeQuery('CREATE (n:A)', {}), ('CREATE (n:B)', None), BatchItem('CREATE (n:C)')]
        result = run(execute_batch(items, executor=executor))
        assert result.succeeded == 3
        assert executor.committed[0][1] == ('CREATE (n:B)', {})

    def test_helpers(self):
        assert chunked(list(range(5)), 2) == [[0, 1], [2, 3], [4]]
        assert to_batch_item(('q', {'a': 1})) == BatchItem('q', {'a': 1})


# ============================================================================
# RETRIES
# ============================================================================

class TestRetries:
    """Test chunk-level retry and terminal failure."""

    def test_transient_failure_recovers(self, no_sleep):
        executor = FakeExecutor(fail_on={1: ConnectionError("blip")})
        result = run(execute_batch(make_items(10), executor=executor, batch_size=10))

        assert result == BatchResult(succeeded=10, total_batches=1)
        assert executor.calls == 2
        no_sleep.assert_awaited_once_with(0.1)

    def test_second_chunk_exhausts_retries(self, no_sleep):
        executor = FakeExecutor(fail_always_after=1)
        progress = []

        with pytest.raises(ConnectionError, match="Neo4j unavailable"):
            run(execute_batch(make_items(200), executor=executor, batch_size=100,
                              max_retries=3, on_progress=progress.append))

        # 1 call for chunk 1, initial attempt + 3 retries for chunk 2
        assert executor.calls == 5
        assert len(executor.committed) == 1
        assert len(executor.committed[0]) == 100
        assert [p.items_processed for p in progress] == [100]
        assert [call.args[0] for call in no_sleep.await_args_list] == [0.1, 0.2, 0.4]

    def test_original_error_object_propagates(self, no_sleep):
        error = ValueError("constraint violated")
        executor = FakeExecutor(fail_on={1: error, 2: error, 3: error})
        with pytest.raises(ValueError) as exc_info:
            run(execute_batch(make_items(1), executor=executor, max_retries=2))
        assert exc_info.value is error

    def test_zero_retries(self, no_sleep):
        executor = FakeExecutor(fail_on={1: RuntimeError("boom")})
        with pytest.raises(RuntimeError, match="boom"):
            run(execute_batch(make_items(1), executor=executor, max_retries=0))
        assert executor.calls == 1
        no_sleep.assert_not_awaited()

    def test_custom_base_delay(self, no_sleep):
        executor = FakeExecutor(fail_on={1: RuntimeError("x"), 2: RuntimeError("x")})
        run(execute_batch(make_items(1), executor=executor, base_delay=1.0))
        assert [call.args[0] for call in no_sleep.await_args_list] == [1.0, 2.0]

    def test_cancellation_not_retried(self, no_sleep):
        executor = FakeExecutor(fail_on={1: asyncio.CancelledError()})
        with pytest.raises(asyncio.CancelledError):
            run(execute_batch(make_items(1), executor=executor))
        assert executor.calls == 1


# ============================================================================
# SYNC WRAPPER AND CONFIG
# ============================================================================

class TestSyncAndConfig:
    """Test the synchronous wrapper and config-driven options."""

    def test_sync_wrapper(self):
        executor = FakeExecutor()
        result = execute_batch_sync(make_items(3), executor=executor, batch_size=2)
        assert result == BatchResult(succeeded=3, total_batches=2)

    def test_options_from_config(self):
        options = batch_options_from_config({'batch_size': 50, 'max_retries': None})
        assert options['batch_size'] == 50
        assert options['max_retries'] >= 0
        assert options['base_delay'] > 0

    def test_default_executor_is_shared_client(self):
        executor = FakeExecutor()
        with patch('bank_graph.graph.neo4j_client.execute_write_transaction', new=executor):
            result = run(execute_batch(make_items(2)))
        assert result.succeeded == 2
        assert executor.calls == 1
