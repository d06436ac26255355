"""Decision engine - drives one dialogue turn with the trading agent.

A turn:
  1. looks up (or creates) the conversation,
  2. checks the human text against the conversation's address lock,
  3. fetches a market snapshot for the effective address or $SYMBOL,
  4. sends persona + prior turns + the enriched human turn to the model,
  5. parses the DECISION line from the full reply and applies the lock.

Only the original human text is stored in history. History and a new lock
are committed after the model has produced a non-empty reply, so a failed
turn can simply be retried.
"""
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Union
from vibetrader.agents.decision_parser import Decision, parse_decision
from vibetrader.agents.llm_client import ChatCompletionClient
from vibetrader.agents.prompts import (
    SYSTEM_PROMPT,
    build_effective_text,
    build_lock_note,
    build_market_context,
)
from vibetrader.core.error_codes import GenerationError, PipelineErrorCode
from vibetrader.core.ids import new_id
from vibetrader.core.logging import get_logger
from vibetrader.services import address_lock
from vibetrader.services.address_lock import LockObservation
from vibetrader.services.conversation_store import (
    ConversationStore,
    Conversation,
    Turn,
    ROLE_HUMAN,
    ROLE_COUNTERPARTY,
)
from vibetrader.services.market_snapshot import MarketSnapshotFetcher
from vibetrader.services.token_snapshot import TokenSnapshot, format_snapshot

logger = get_logger(__name__)


@dataclass
class SnapshotSurfaced:
    """A snapshot was resolved for this turn (emitted before any text)."""
    snapshot: TokenSnapshot


@dataclass
class TextChunk:
    content: str


@dataclass
class TurnOutcome:
    """Final item of every turn."""
    conversation_id: str
    response_text: str
    decision: Optional[Decision] = None
    snapshot: Optional[TokenSnapshot] = None
    decision_id: Optional[str] = None
    locked_address: Optional[str] = None


TurnEvent = Union[SnapshotSurfaced, TextChunk, TurnOutcome]


@dataclass
class _PreparedTurn:
    conversation: Conversation
    observation: LockObservation
    snapshot: Optional[TokenSnapshot]
    messages: List[Dict[str, str]]


class DecisionEngine:
    """Per-conversation dialogue driver. Conversations come from an injected store."""

    def __init__(
        self,
        llm: ChatCompletionClient,
        store: ConversationStore,
        fetcher: Optional[MarketSnapshotFetcher] = None,
        portfolio=None,
        system_prompt: str = SYSTEM_PROMPT
    ):
        self.llm = llm
        self.store = store
        self.fetcher = fetcher
        self.portfolio = portfolio
        self.system_prompt = system_prompt

    async def _fetch_snapshot(self, observation: LockObservation, human_text: str) -> Optional[TokenSnapshot]:
        if self.fetcher is None:
            return None
        try:
            address = observation.effective_address
            if address:
                return await self.fetcher.get_by_address(address)
            return await self.fetcher.resolve_text(human_text)
        except Exception as e:
            logger.warning(f"Snapshot enrichment failed: {e}")
            return None

    async def _portfolio_block(self) -> Optional[str]:
        if self.portfolio is None:
            return None
        try:
            return await self.portfolio.context_block()
        except Exception as e:
            logger.warning(f"Portfolio context unavailable: {e}")
            return None

    async def _prepare(self, conversation_id: str, human_text: str) -> _PreparedTurn:
        conversation = self.store.get_or_create(conversation_id)
        observation = address_lock.observe(conversation, human_text)
        snapshot = await self._fetch_snapshot(observation, human_text)

        blocks = [await self._portfolio_block()]
        if snapshot is not None:
            blocks.append(build_market_context(format_snapshot(snapshot)))
        if observation.locked_address:
            blocks.append(build_lock_note(observation.locked_address, observation.ignored_address))

        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend(conversation.messages())
        messages.append({"role": ROLE_HUMAN, "content": build_effective_text(human_text, blocks)})
        return _PreparedTurn(conversation, observation, snapshot, messages)

    def _finish(self, prepared: _PreparedTurn, human_text: str, response_text: str) -> TurnOutcome:
        if not response_text.strip():
            raise GenerationError("Model returned an empty response", PipelineErrorCode.GENERATION_EMPTY)

        conversation = prepared.conversation
        conversation.turns.append(Turn(ROLE_HUMAN, human_text))
        conversation.turns.append(Turn(ROLE_COUNTERPARTY, response_text))
        prepared.observation.commit(conversation)

        decision = address_lock.enforce(conversation, parse_decision(response_text))
        decision_id = new_id("dec_") if decision is not None else None
        if decision is not None:
            logger.info(
                "Decision %s in %s: %s target=%s",
                decision_id, conversation.conversation_id, decision.verdict.value, decision.target
            )

        return TurnOutcome(
            conversation_id=conversation.conversation_id,
            response_text=response_text,
            decision=decision,
            snapshot=prepared.snapshot,
            decision_id=decision_id,
            locked_address=conversation.locked_address,
        )

    async def advance(self, conversation_id: str, human_text: str) -> TurnOutcome:
        """Run one turn and return the complete reply."""
        prepared = await self._prepare(conversation_id, human_text)
        response_text = await self.llm.complete(prepared.messages)
        return self._finish(prepared, human_text, response_text)

    async def advance_streaming(self, conversation_id: str, human_text: str) -> AsyncIterator[TurnEvent]:
        """Run one turn, yielding an optional SnapshotSurfaced, TextChunks in
        generation order, then exactly one TurnOutcome."""
        prepared = await self._prepare(conversation_id, human_text)
        if prepared.snapshot is not None:
            yield SnapshotSurfaced(prepared.snapshot)

        parts: List[str] = []
        async for content in self.llm.stream(prepared.messages):
            parts.append(content)
            yield TextChunk(content)

        yield self._finish(prepared, human_text, "".join(parts))

    def get_history(self, conversation_id: str) -> List[Dict[str, str]]:
        conversation = self.store.get(conversation_id)
        return conversation.messages() if conversation else []

    def clear(self, conversation_id: str) -> bool:
        return self.store.clear(conversation_id)
