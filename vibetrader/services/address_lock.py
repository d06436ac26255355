"""Conversation address lock.

The first token address found in human-authored text binds the conversation
to that address for its lifetime. Later addresses are ignored for execution,
and any BUY decision is re-targeted to the locked address.
"""
from dataclasses import dataclass, replace
from typing import Optional
from vibetrader.agents.decision_parser import Decision
from vibetrader.core.logging import get_logger
from vibetrader.services.conversation_store import Conversation
from vibetrader.services.market_snapshot import extract_asset_reference

logger = get_logger(__name__)


@dataclass
class LockObservation:
    """What a human turn says about the lock, before anything is committed."""
    locked_address: Optional[str]
    mentioned_address: Optional[str]
    pending_lock: Optional[str] = None

    @property
    def ignored_address(self) -> Optional[str]:
        """A mentioned address that differs from an existing lock."""
        if self.locked_address and self.mentioned_address and self.mentioned_address != self.locked_address:
            return self.mentioned_address
        return None

    @property
    def effective_address(self) -> Optional[str]:
        return self.locked_address or self.pending_lock

    def commit(self, conversation: Conversation) -> None:
        if self.pending_lock and conversation.lock(self.pending_lock):
            logger.info(f"Conversation {conversation.conversation_id} locked to {self.pending_lock}")


def observe(conversation: Conversation, human_text: str) -> LockObservation:
    """Inspect a human turn against the conversation lock without mutating it."""
    reference = extract_asset_reference(human_text)
    mentioned = reference.address if reference else None
    locked = conversation.locked_address

    observation = LockObservation(locked_address=locked, mentioned_address=mentioned)
    if locked is None and mentioned:
        observation.pending_lock = mentioned
    elif observation.ignored_address:
        logger.warning(
            "Conversation %s is locked to %s; ignoring mentioned address %s",
            conversation.conversation_id, locked, mentioned
        )
    return observation


def enforce(conversation: Conversation, decision: Optional[Decision]) -> Optional[Decision]:
    """Re-target a BUY decision to the conversation's locked address."""
    if decision is None or not decision.is_act:
        return decision
    locked = conversation.locked_address
    # A BUY without a usable target stays ineligible even under a lock
    if locked is None or decision.target is None or decision.target == locked:
        return decision
    logger.warning(
        "Overriding BUY target %s with locked address %s (conversation %s)",
        decision.target, locked, conversation.conversation_id
    )
    return replace(decision, target=locked)
