"""
Productivity Scoring - Bulk Recompute Runner.

============================================================
PURPOSE
============================================================
Runs one worker per wallet with bounded concurrency and a
per-wallet timeout, collecting an outcome for every wallet.

============================================================
DESIGN PRINCIPLES
============================================================
- One wallet's failure or timeout never aborts the batch
- Concurrency bounded by an asyncio.Semaphore
- Each sync call gets its own worker thread, so a hung call
  never holds a slot another wallet is waiting for
- Outcomes are returned in input order

============================================================
USAGE
============================================================
    runner = BulkRecomputeRunner(concurrency=4, timeout_seconds=30)
    result = await runner.run(wallet_ids, recompute_wallet)
    print(result.succeeded, result.failed)

============================================================
"""

import asyncio
import inspect
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence
from uuid import UUID

from core.exceptions import PartialBatchFailure, ValidationError
from core.settings import get_settings

from .types import BatchResult, WalletOutcome


logger = logging.getLogger(__name__)


Worker = Callable[[UUID], Any]


class BulkRecomputeRunner:
    """
    Bounded, failure-isolating executor for per-wallet work.

    The worker is called with one wallet id. It may be a plain
    function (run in a worker thread) or a coroutine function.
    """

    def __init__(
        self,
        concurrency: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        raise_on_failure: bool = False,
    ):
        settings = get_settings()
        self.concurrency = concurrency or settings.bulk_concurrency
        self.timeout_seconds = timeout_seconds or settings.bulk_wallet_timeout_seconds
        self.raise_on_failure = raise_on_failure

        if self.concurrency < 1:
            raise ValidationError("concurrency must be at least 1", field="concurrency", value=concurrency)
        if self.timeout_seconds <= 0:
            raise ValidationError("timeout must be positive", field="timeout_seconds", value=timeout_seconds)

    async def run(self, wallet_ids: Sequence[UUID], worker: Worker) -> BatchResult:
        """
        Run `worker` for every wallet.

        Returns:
            BatchResult with one outcome per wallet, in input order

        Raises:
            PartialBatchFailure: raise_on_failure is set and a wallet failed
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        is_async = inspect.iscoroutinefunction(worker)

        async def run_one(wallet_id: UUID) -> WalletOutcome:
            async with semaphore:
                return await self._run_wallet(wallet_id, worker, is_async)

        outcomes: List[WalletOutcome] = list(
            await asyncio.gather(*(run_one(wallet_id) for wallet_id in wallet_ids))
        )

        result = BatchResult(outcomes=outcomes)
        logger.info(
            f"Bulk recompute finished: {result.succeeded} succeeded, {result.failed} failed"
        )

        if self.raise_on_failure and result.failed > 0:
            raise PartialBatchFailure(result)
        return result

    async def _run_wallet(
        self,
        wallet_id: UUID,
        worker: Worker,
        is_async: bool,
    ) -> WalletOutcome:
        started = time.monotonic()
        executor = None

        if is_async:
            call = worker(wallet_id)
        else:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bulk-recompute")
            call = asyncio.get_running_loop().run_in_executor(executor, worker, wallet_id)

        try:
            value = await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Wallet {wallet_id} timed out after {self.timeout_seconds}s in bulk recompute"
            )
            return WalletOutcome(
                wallet_id=wallet_id,
                success=False,
                error=f"Timed out after {self.timeout_seconds} seconds",
                timed_out=True,
                duration_seconds=time.monotonic() - started,
            )
        except Exception as e:
            logger.warning(f"Wallet {wallet_id} failed in bulk recompute: {e}")
            return WalletOutcome(
                wallet_id=wallet_id,
                success=False,
                error=f"{type(e).__name__}: {e}",
                duration_seconds=time.monotonic() - started,
            )
        finally:
            if executor is not None:
                # A timed-out thread is left to finish on its own
                executor.shutdown(wait=False)

        return WalletOutcome(
            wallet_id=wallet_id,
            success=True,
            result=value,
            duration_seconds=time.monotonic() - started,
        )
