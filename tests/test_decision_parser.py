"""Tests for DECISION line parsing."""
import pytest
from vibetrader.agents.decision_parser import Verdict, parse_decision, parse_decision_line

TOKEN_45 = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB2634"
TOKEN_44 = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class TestGrammar:

    def test_buy_with_45_char_identifier(self):
        text = f"ser this chart is bussin, volume is insane\n\nDECISION: BUY {TOKEN_45}"
        decision = parse_decision(text)
        assert len(TOKEN_45) == 45
        assert decision.verdict == Verdict.ACT
        assert decision.target == TOKEN_45
        assert decision.executable

    def test_pass(self):
        decision = parse_decision("liquidity is a puddle. ngmi\nDECISION: PASS")
        assert decision.verdict == Verdict.DECLINE
        assert decision.target is None
        assert not decision.executable

    def test_no_sentinel_means_no_decision(self):
        assert parse_decision("tell me more about the team fr") is None
        assert parse_decision("") is None

    def test_rationale_is_full_text(self):
        text = f"looks good\nDECISION: BUY {TOKEN_44}"
        assert parse_decision(text).rationale == text


class TestMalformedVariants:

    @pytest.mark.parametrize("line", [
        f"decision: buy {TOKEN_44}",
        f"Decision: Buy {TOKEN_44}",
        f"**DECISION: BUY {TOKEN_44}**",
        f"**DECISION:** BUY {TOKEN_44}",
        f"> DECISION: BUY `{TOKEN_44}`",
        f"## DECISION: BUY {TOKEN_44}.",
        f"DECISION:   BUY   <{TOKEN_44}>",
        f"DECISION: BUY \"{TOKEN_44}\" lfg",
    ])
    def test_decorated_buy_lines(self, line):
        decision = parse_decision(line)
        assert decision is not None
        assert decision.verdict == Verdict.ACT
        assert decision.target == TOKEN_44

    @pytest.mark.parametrize("line", ["decision: pass", "**DECISION: PASS**", "DECISION: Pass.", "> decision:  PASS"])
    def test_decorated_pass_lines(self, line):
        assert parse_decision(line).verdict == Verdict.DECLINE

    def test_buy_without_target_is_not_executable(self):
        decision = parse_decision("DECISION: BUY")
        assert decision.verdict == Verdict.ACT
        assert decision.target is None
        assert not decision.executable

    def test_buy_with_invalid_target_keeps_raw_text(self):
        decision = parse_decision("DECISION: BUY 0xdeadbeef")
        assert decision.verdict == Verdict.ACT
        assert decision.target is None
        assert decision.raw_target == "0xdeadbeef"

    def test_symbol_is_not_a_target(self):
        assert parse_decision("DECISION: BUY $BONK").target is None

    def test_unknown_sentinel_lines_are_skipped(self):
        decision = parse_decision("DECISION: MAYBE\nDECISION: HOLD\nDECISION: PASS")
        assert decision.verdict == Verdict.DECLINE

    def test_first_recognized_line_wins(self):
        decision = parse_decision(f"DECISION: PASS\nDECISION: BUY {TOKEN_44}")
        assert decision.verdict == Verdict.DECLINE

    def test_sentinel_must_start_the_line(self):
        assert parse_decision(f"my DECISION: BUY {TOKEN_44} is coming") is None

    def test_single_line_helper(self):
        assert parse_decision_line("just vibes", rationale="x") is None
        assert parse_decision_line("DECISION: PASS", rationale="x").rationale == "x"
