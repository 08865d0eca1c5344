# listener.py
import asyncio
import logging
from collections import Counter
from typing import Optional, Set, Tuple

from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from analysis.decoder import decode_swap, is_target_pair
from analysis.engine import ArbitrageDecisionEngine
from analysis.models import DecodedSwap, EvaluationOutcome, ExecutionState
from constants import MAX_CONCURRENT_EVALUATIONS
from exceptions import ConfigurationError, DecodeError, ExecutionError, SwapMathError, VenueError
from services.balance_gate import BalanceGate
from services.pending_feed import PendingTransactionFeed
from services.trade_executor import TradeExecutor


class InFlightRegistry:
    """Directional pair keys with an execution in progress."""

    def __init__(self) -> None:
        self._keys: Set[Tuple[str, str]] = set()
        self._lock = asyncio.Lock()

    @staticmethod
    def key_for(token_in: str, token_out: str) -> Tuple[str, str]:
        return token_in.lower(), token_out.lower()

    async def claim(self, token_in: str, token_out: str) -> bool:
        key = self.key_for(token_in, token_out)
        async with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    async def release(self, token_in: str, token_out: str) -> None:
        async with self._lock:
            self._keys.discard(self.key_for(token_in, token_out))


class MempoolListener:
    def __init__(
        self,
        web3: AsyncWeb3,
        feed: PendingTransactionFeed,
        engine: ArbitrageDecisionEngine,
        balance_gate: BalanceGate,
        executor: TradeExecutor,
        *,
        contract_address: str,
        target_token_in: str,
        target_token_out: str,
        max_concurrency: int = MAX_CONCURRENT_EVALUATIONS,
        dedupe: bool = True,
    ):
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive.")
        self.web3 = web3
        self.feed = feed
        self.engine = engine
        self.balance_gate = balance_gate
        self.executor = executor
        self.contract_address = contract_address
        self.target_token_in = target_token_in
        self.target_token_out = target_token_out
        self.max_concurrency = max_concurrency
        self.in_flight: Optional[InFlightRegistry] = InFlightRegistry() if dedupe else None
        self.stats: Counter = Counter()
        self.logger = logging.getLogger(__name__)
        self._slots = asyncio.Semaphore(max_concurrency)
        self._tasks: Set[asyncio.Task] = set()

    async def run(self) -> None:
        """Consumes the pending feed until it fails; FeedSubscriptionError propagates."""
        try:
            async for tx_hash in self.feed.subscribe():
                await self._slots.acquire()
                task = asyncio.create_task(self._evaluate(tx_hash))
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._slots.release()

    async def _evaluate(self, tx_hash: str) -> None:
        try:
            outcome = await self.process_transaction(tx_hash)
        except Exception:
            self.logger.exception("Unexpected error while evaluating %s", tx_hash)
            outcome = EvaluationOutcome.EXECUTION_FAILED
        self.stats[outcome] += 1

    async def process_transaction(self, tx_hash: str) -> EvaluationOutcome:
        """Runs one pending transaction through decode, filter, pricing, gating and execution."""
        try:
            tx = await self.web3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return EvaluationOutcome.TX_NOT_FOUND
        except Exception as exc:
            self.logger.warning("Failed to fetch transaction %s: %s", tx_hash, exc)
            return EvaluationOutcome.TX_FETCH_FAILED
        if tx is None:
            return EvaluationOutcome.TX_NOT_FOUND

        try:
            swap = decode_swap(tx.get("input", b""))
        except DecodeError as exc:
            self.logger.debug("Failed to decode transaction %s: %s", tx_hash, exc)
            return EvaluationOutcome.NOT_A_SWAP

        if not is_target_pair(swap, self.target_token_in, self.target_token_out):
            self.logger.debug("Transaction does not involve the target token pair: %s", tx_hash)
            return EvaluationOutcome.OFF_TARGET

        return await self._evaluate_swap(tx_hash, swap)

    async def _evaluate_swap(self, tx_hash: str, swap: DecodedSwap) -> EvaluationOutcome:
        try:
            opportunity = await self.engine.evaluate(swap.token_in, swap.token_out, swap.amount_in)
        except VenueError as exc:
            self.logger.info("Venue unavailable for %s: %s", tx_hash, exc)
            return EvaluationOutcome.VENUE_UNAVAILABLE
        except SwapMathError as exc:
            self.logger.error("Swap math rejected %s: %s", tx_hash, exc)
            return EvaluationOutcome.MATH_ERROR
        except ExecutionError as exc:
            self.logger.error("Gas estimation failed for %s: %s", tx_hash, exc)
            return EvaluationOutcome.EXECUTION_FAILED
        except ConfigurationError as exc:
            self.logger.error("Cannot price execution for %s: %s", tx_hash, exc)
            return EvaluationOutcome.MISCONFIGURED

        if opportunity is None:
            self.logger.debug("No profitable opportunity for %s", tx_hash)
            return EvaluationOutcome.NO_OPPORTUNITY

        if self.in_flight is not None and not await self.in_flight.claim(swap.token_in, swap.token_out):
            self.logger.info(
                "Skipping %s: an arbitrage on %s -> %s is already in flight",
                tx_hash,
                swap.token_in,
                swap.token_out,
            )
            return EvaluationOutcome.DUPLICATE

        try:
            if not await self.balance_gate.has_sufficient_balance(
                self.contract_address, swap.token_in, swap.amount_in
            ):
                self.logger.warning(
                    "Insufficient %s balance in %s for %s (need %s)",
                    swap.token_in,
                    self.contract_address,
                    tx_hash,
                    swap.amount_in,
                )
                return EvaluationOutcome.INSUFFICIENT_BALANCE

            try:
                result = await self.executor.execute(opportunity, swap.token_in, swap.token_out, swap.amount_in)
            except ExecutionError as exc:
                self.logger.error("Failed to execute arbitrage for %s: %s", tx_hash, exc)
                return EvaluationOutcome.EXECUTION_FAILED
            except ConfigurationError as exc:
                self.logger.error("Cannot build arbitrage call for %s: %s", tx_hash, exc)
                return EvaluationOutcome.MISCONFIGURED
        finally:
            if self.in_flight is not None:
                await self.in_flight.release(swap.token_in, swap.token_out)

        if result.state == ExecutionState.UNMINED:
            return EvaluationOutcome.UNMINED
        if result.reason == "reverted":
            self.logger.error("Arbitrage transaction %s for %s was mined but reverted", result.tx_hash, tx_hash)
            return EvaluationOutcome.EXECUTION_FAILED

        self.logger.info(
            "Arbitrage executed: %s -> %s (amount: %s, net profit: %s, venue: %s, tx: %s)",
            swap.token_in,
            swap.token_out,
            swap.amount_in,
            opportunity.net_profit,
            opportunity.preferred_venue.name,
            result.tx_hash,
        )
        return EvaluationOutcome.EXECUTED

    def log_summary(self) -> None:
        if not self.stats:
            self.logger.info("No pending transactions evaluated.")
            return
        summary = ", ".join(f"{outcome.value}={count}" for outcome, count in sorted(self.stats.items()))
        self.logger.info("Evaluation summary: %s", summary)
