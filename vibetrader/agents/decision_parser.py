"""Decision parser - extracts the agent's verdict from generated text.

Grammar (one line, case-insensitive keywords):

    DECISION: BUY <token_address>
    DECISION: PASS

Leading markdown decoration (``**``, ``>``, ``#``, backticks) is ignored.
The address is read from the original-case line because base58 is
case-sensitive; surrounding quotes, brackets and markdown are stripped and
the result must be a base58 string of 32-64 characters, otherwise the
decision is still BUY but carries no target. ``DECISION:`` lines that match neither form are skipped
and scanning continues. The first recognized line wins.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from vibetrader.core.addresses import is_valid_address
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

SENTINEL = "DECISION:"
_LEADING_DECORATION = " \t*_#>`"
_TARGET_DECORATION = " \t*_`'\"<>()[]{}.,;:!"
_BUY_RE = re.compile(r"^BUY(?:\s+(.*))?$", re.IGNORECASE)


class Verdict(str, Enum):
    ACT = "buy"
    DECLINE = "pass"


@dataclass
class Decision:
    """A parsed verdict. target is only ever set for ACT."""
    verdict: Verdict
    rationale: str
    target: Optional[str] = None
    raw_target: Optional[str] = None

    @property
    def is_act(self) -> bool:
        return self.verdict == Verdict.ACT

    @property
    def executable(self) -> bool:
        """An ACT with a well-formed target; anything else never reaches the venue."""
        return self.is_act and bool(self.target)


def _clean_target(raw: str) -> str:
    token = raw.strip().split()[0] if raw.strip() else ""
    return token.strip(_TARGET_DECORATION)


def parse_decision_line(line: str, rationale: str) -> Optional[Decision]:
    """Parse a single line; None when it is not a recognized sentinel line."""
    stripped = line.strip().lstrip(_LEADING_DECORATION)
    if not stripped.upper().startswith(SENTINEL):
        return None

    remainder = stripped[len(SENTINEL):].strip().lstrip(_LEADING_DECORATION).rstrip(_TARGET_DECORATION)
    buy_match = _BUY_RE.match(remainder)
    if buy_match:
        raw_target = (buy_match.group(1) or "").strip()
        target = _clean_target(raw_target)
        if not is_valid_address(target):
            logger.warning(f"Decision BUY has no usable target: {raw_target[:64]!r}")
            return Decision(verdict=Verdict.ACT, rationale=rationale, target=None, raw_target=raw_target or None)
        return Decision(verdict=Verdict.ACT, rationale=rationale, target=target, raw_target=raw_target)

    if remainder.upper() == "PASS":
        return Decision(verdict=Verdict.DECLINE, rationale=rationale)

    logger.debug(f"Skipping unrecognized decision line: {line[:80]!r}")
    return None


def parse_decision(text: str) -> Optional[Decision]:
    """Scan generated text for the first recognized decision line.

    Returns None when no sentinel line is present; the conversation simply
    continues in that case.
    """
    if not text:
        return None
    for line in text.splitlines():
        decision = parse_decision_line(line, rationale=text)
        if decision is not None:
            return decision
    return None
