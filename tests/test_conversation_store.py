"""Tests for the conversation store and the address lock."""
from dataclasses import replace
import pytest
from conftest import BONK, TOKEN_45, USDC
from vibetrader.agents.decision_parser import Decision, Verdict
from vibetrader.services import address_lock
from vibetrader.services.conversation_store import ConversationStore, Conversation


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestStore:

    def test_get_or_create_returns_same_conversation(self, clock):
        store = ConversationStore(max_entries=5, idle_ttl_seconds=60, clock=clock)
        conversation = store.get_or_create("conv_a")
        assert store.get_or_create("conv_a") is conversation
        assert len(store) == 1

    def test_lru_eviction_at_capacity(self, clock):
        store = ConversationStore(max_entries=2, idle_ttl_seconds=0, clock=clock)
        store.get_or_create("a")
        store.get_or_create("b")
        store.get("a")
        store.get_or_create("c")

        assert "a" in store
        assert "b" not in store
        assert "c" in store

    def test_idle_conversations_expire(self, clock):
        store = ConversationStore(max_entries=10, idle_ttl_seconds=60, clock=clock)
        store.get_or_create("a")
        clock.now += 61
        assert store.get("a") is None
        assert len(store) == 0

    def test_access_refreshes_idle_timer(self, clock):
        store = ConversationStore(max_entries=10, idle_ttl_seconds=60, clock=clock)
        store.get_or_create("a")
        clock.now += 50
        assert store.get("a") is not None
        clock.now += 50
        assert store.get("a") is not None

    def test_expired_entries_are_swept_on_create(self, clock):
        store = ConversationStore(max_entries=10, idle_ttl_seconds=60, clock=clock)
        store.get_or_create("old")
        clock.now += 120
        store.get_or_create("new")
        assert len(store) == 1

    def test_clear(self, clock):
        store = ConversationStore(max_entries=10, idle_ttl_seconds=60, clock=clock)
        store.get_or_create("a")
        assert store.clear("a") is True
        assert store.clear("a") is False


class TestAddressLock:

    def test_first_address_becomes_pending_lock(self):
        conversation = Conversation("c1")
        observation = address_lock.observe(conversation, f"check out {BONK}")
        assert observation.pending_lock == BONK
        assert observation.effective_address == BONK
        assert conversation.locked_address is None

        observation.commit(conversation)
        assert conversation.locked_address == BONK

    def test_later_address_is_ignored(self):
        conversation = Conversation("c1", locked_address=BONK)
        observation = address_lock.observe(conversation, f"actually buy {USDC}")
        assert observation.ignored_address == USDC
        assert observation.effective_address == BONK
        assert observation.pending_lock is None

        observation.commit(conversation)
        assert conversation.locked_address == BONK

    def test_45_char_identifier_locks_before_later_mentions(self):
        conversation = Conversation("c1")
        address_lock.observe(conversation, f"check out {TOKEN_45}").commit(conversation)
        assert conversation.locked_address == TOKEN_45

        observation = address_lock.observe(conversation, f"or maybe {USDC}")
        assert observation.ignored_address == USDC
        assert observation.effective_address == TOKEN_45

    def test_lock_is_set_once(self):
        conversation = Conversation("c1")
        assert conversation.lock(BONK) is True
        assert conversation.lock(USDC) is False
        assert conversation.locked_address == BONK

    def test_buy_is_retargeted_to_lock(self):
        conversation = Conversation("c1", locked_address=BONK)
        decision = Decision(Verdict.ACT, "aping", target=USDC, raw_target=USDC)
        enforced = address_lock.enforce(conversation, decision)
        assert enforced.target == BONK
        assert enforced.rationale == "aping"

    def test_pass_and_untargeted_buy_unchanged(self):
        conversation = Conversation("c1", locked_address=BONK)
        decline = Decision(Verdict.DECLINE, "nah")
        untargeted = Decision(Verdict.ACT, "yolo", target=None, raw_target="$BONK")
        assert address_lock.enforce(conversation, decline) is decline
        assert address_lock.enforce(conversation, untargeted).target is None
        assert address_lock.enforce(conversation, None) is None

    def test_no_lock_leaves_target(self):
        decision = Decision(Verdict.ACT, "aping", target=USDC)
        assert address_lock.enforce(Conversation("c1"), decision).target == USDC
