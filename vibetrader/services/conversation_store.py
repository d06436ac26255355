"""In-process conversation store with LRU and idle-time eviction.

Conversations live only in this process. Callers are expected to route a
conversation's turns to one process and not overlap them.
"""
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

ROLE_HUMAN = "user"
ROLE_COUNTERPARTY = "assistant"


@dataclass
class Turn:
    role: str
    content: str

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Conversation:
    """Ordered turns plus the address the conversation is locked to."""
    conversation_id: str
    turns: List[Turn] = field(default_factory=list)
    locked_address: Optional[str] = None
    last_active: float = 0.0

    def lock(self, address: str) -> bool:
        """Set the lock once. Returns True if this call set it."""
        if self.locked_address is not None:
            return False
        self.locked_address = address
        return True

    def messages(self) -> List[Dict[str, str]]:
        return [t.to_message() for t in self.turns]


class ConversationStore:
    """Bounded keyed store of conversations."""

    def __init__(self, max_entries: Optional[int] = None, idle_ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        settings = get_settings()
        self.max_entries = max_entries or settings.conversation_max_entries
        self.idle_ttl_seconds = idle_ttl_seconds if idle_ttl_seconds is not None else settings.conversation_idle_ttl_seconds
        self._clock = clock
        self._conversations: "OrderedDict[str, Conversation]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: str) -> bool:
        return self.get(conversation_id) is not None

    def _is_expired(self, conversation: Conversation, now: float) -> bool:
        return self.idle_ttl_seconds > 0 and now - conversation.last_active > self.idle_ttl_seconds

    def _evict(self, now: float) -> None:
        # Oldest first; stop at the first conversation still within its TTL
        while self._conversations:
            oldest_id, oldest = next(iter(self._conversations.items()))
            if len(self._conversations) > self.max_entries or self._is_expired(oldest, now):
                del self._conversations[oldest_id]
                logger.debug(f"Evicted conversation {oldest_id}")
            else:
                break

    def get(self, conversation_id: str) -> Optional[Conversation]:
        """Existing conversation (refreshing its recency), or None."""
        now = self._clock()
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None
        if self._is_expired(conversation, now):
            del self._conversations[conversation_id]
            return None
        conversation.last_active = now
        self._conversations.move_to_end(conversation_id)
        return conversation

    def get_or_create(self, conversation_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        if conversation is not None:
            return conversation
        now = self._clock()
        conversation = Conversation(conversation_id=conversation_id, last_active=now)
        self._conversations[conversation_id] = conversation
        self._evict(now)
        return conversation

    def clear(self, conversation_id: str) -> bool:
        return self._conversations.pop(conversation_id, None) is not None
