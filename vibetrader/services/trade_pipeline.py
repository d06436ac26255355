"""Turns a finished dialogue turn into trades, ledger rows and token events.

A BUY decision is executed at most once per (conversation_id, decision_id):
concurrent deliveries of the same outcome share one in-flight execution,
repeated deliveries get the cached settlement, and the ledger's unique
constraint backs this up across processes. Once started, an execution runs
to its terminal outcome even if the requesting client disconnects.
"""
import asyncio
import sqlite3
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from vibetrader.agents.decision_engine import TurnOutcome
from vibetrader.agents.decision_parser import Decision, Verdict
from vibetrader.core.config import get_settings
from vibetrader.core.error_codes import ExecutionError
from vibetrader.core.logging import get_logger
from vibetrader.core.time import now_iso
from vibetrader.db.repo.purchases_repo import PurchasesRepo
from vibetrader.orchestrator.event_pubsub import TokenEventBroadcaster
from vibetrader.orchestrator.token_events import pitched_event, rejected_event, bought_event
from vibetrader.services.swap_executor import SwapExecutor, ExecutionResult
from vibetrader.services.token_snapshot import TokenSnapshot

logger = get_logger(__name__)

SWAP_FAILED_NOTE = "\n\n(Note: I wanted to buy but the swap failed. Make sure the wallet has SOL!)"
SETTLED_CACHE_SIZE = 1000


@dataclass
class Settlement:
    """What the caller should tell the human about a turn."""
    conversation_id: str
    message: str
    decision: Optional[Decision] = None
    decision_id: Optional[str] = None
    execution: Optional[ExecutionResult] = None
    error: Optional[ExecutionError] = None
    purchase: Optional[Dict[str, Any]] = None

    def to_decision_payload(self) -> Optional[Dict[str, Any]]:
        """ChatResponse.decision: a settled buy or a pass, else None."""
        if self.decision is None:
            return None
        if self.decision.verdict == Verdict.DECLINE:
            return {"action": "pass", "reasoning": self.decision.rationale}
        if self.execution is not None:
            return {
                "action": "buy",
                "token": self.execution.token_address,
                "amount": self.execution.output_amount,
                "reasoning": self.decision.rationale,
            }
        return None


class TradePipeline:
    """Settles TurnOutcomes: executes BUYs once, records them, and emits events."""

    def __init__(
        self,
        executor: SwapExecutor,
        broadcaster: TokenEventBroadcaster,
        purchases_repo: Optional[PurchasesRepo] = None,
        buy_amount_sol: Optional[float] = None
    ):
        self.executor = executor
        self.broadcaster = broadcaster
        self.purchases_repo = purchases_repo or PurchasesRepo()
        self.buy_amount_sol = buy_amount_sol if buy_amount_sol is not None else get_settings().buy_amount_sol
        self._in_flight: Dict[Tuple[str, str], asyncio.Future] = {}
        self._settled: "OrderedDict[Tuple[str, str], Settlement]" = OrderedDict()

    async def announce_snapshot(self, snapshot: TokenSnapshot) -> None:
        await self.broadcaster.publish(pitched_event(snapshot))

    async def settle(
        self,
        outcome: TurnOutcome,
        user_id: Optional[str] = None,
        user_type: Optional[str] = None,
        snapshot_announced: bool = False
    ) -> Settlement:
        if outcome.snapshot is not None and not snapshot_announced:
            await self.announce_snapshot(outcome.snapshot)

        decision = outcome.decision
        base = Settlement(
            conversation_id=outcome.conversation_id,
            message=outcome.response_text,
            decision=decision,
            decision_id=outcome.decision_id,
        )
        if decision is None:
            return base

        if decision.verdict == Verdict.DECLINE:
            if outcome.snapshot is not None:
                await self.broadcaster.publish(rejected_event(outcome.snapshot, decision.rationale))
            return base

        if not decision.executable:
            logger.warning(
                "BUY decision %s without a usable target (raw=%r); not executing",
                outcome.decision_id, decision.raw_target
            )
            return base

        key = (outcome.conversation_id, outcome.decision_id)
        if key in self._settled:
            logger.info(f"Decision {outcome.decision_id} already settled; returning cached result")
            return self._settled[key]

        existing = self.purchases_repo.get_by_decision(*key)
        if existing is not None:
            logger.info(f"Decision {outcome.decision_id} already in ledger as {existing['id']}")
            settlement = Settlement(
                conversation_id=outcome.conversation_id,
                message=outcome.response_text,
                decision=decision,
                decision_id=outcome.decision_id,
                execution=ExecutionResult(
                    signature=existing["txSignature"],
                    token_address=existing["tokenAddress"],
                    input_amount=existing["amountSol"],
                    output_amount=existing["amountToken"],
                    output_amount_raw=0,
                    price_per_token=existing["pricePerToken"],
                ),
                purchase=existing,
            )
            self._remember(key, settlement)
            return settlement

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._execute_and_record(outcome, user_id, user_type))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, k=key: self._in_flight.pop(k, None))

        # The swap keeps running if this request is cancelled
        settlement = await asyncio.shield(task)
        self._remember(key, settlement)
        return settlement

    def _remember(self, key: Tuple[str, str], settlement: Settlement) -> None:
        self._settled[key] = settlement
        self._settled.move_to_end(key)
        while len(self._settled) > SETTLED_CACHE_SIZE:
            self._settled.popitem(last=False)

    async def _execute_and_record(self, outcome: TurnOutcome, user_id: Optional[str],
                                  user_type: Optional[str]) -> Settlement:
        decision = outcome.decision
        target = decision.target
        settlement = Settlement(
            conversation_id=outcome.conversation_id,
            message=outcome.response_text,
            decision=decision,
            decision_id=outcome.decision_id,
        )

        try:
            execution = await self.executor.execute(target, self.buy_amount_sol)
        except ExecutionError as e:
            logger.error("Swap failed for decision %s: %s", outcome.decision_id, e.to_dict())
            settlement.error = e
            settlement.message = outcome.response_text + SWAP_FAILED_NOTE
            self._remember((outcome.conversation_id, outcome.decision_id), settlement)
            return settlement

        settlement.execution = execution
        snapshot = outcome.snapshot if outcome.snapshot and outcome.snapshot.address == target else None
        try:
            settlement.purchase = self.purchases_repo.add_purchase({
                "token_address": execution.token_address,
                "token_symbol": snapshot.symbol if snapshot else "UNKNOWN",
                "amount_sol": execution.input_amount,
                "amount_token": execution.output_amount,
                "price_per_token": execution.price_per_token,
                "reasoning": decision.rationale,
                "tx_signature": execution.signature,
                "timestamp": now_iso(),
                "user_id": user_id,
                "user_type": user_type,
                "conversation_id": outcome.conversation_id,
                "decision_id": outcome.decision_id,
            })
        except sqlite3.IntegrityError:
            logger.warning(f"Purchase for decision {outcome.decision_id} already recorded")
        except sqlite3.Error as e:
            # Swap already settled on-chain
            logger.error(f"Failed to record purchase tx={execution.signature}: {e}")

        await self.broadcaster.publish(bought_event(
            snapshot, execution.token_address, execution.input_amount,
            execution.output_amount, execution.signature,
        ))
        return settlement
