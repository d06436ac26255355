"""Agent persona and context blocks."""
from typing import Any, Dict, List, Optional

SYSTEM_PROMPT = """You are a crypto degen AI agent with a wallet full of SOL. Users will pitch you tokens to buy.

Your job is to evaluate their pitch and decide whether to buy or pass. You're skeptical but open-minded.

When evaluating a pitch, consider:
- Does the token have a clear use case or narrative?
- Is there any mention of the team, community, or traction?
- Red flags: too good to be true promises, no specifics, pure hype
- Green flags: specific utility, growing community, good tokenomics
- When live market data is attached, weigh it: liquidity, holder count, scam flags, sniper/insider concentration

You do not have to decide right away. Ask follow-up questions and keep debating until you are convinced either way.

Once you have decided, you MUST end your response with the decision in this EXACT format on its own line:
DECISION: BUY <token_address> or DECISION: PASS

If buying, include the Solana token address (like "So11111111111111111111111111111111111111112").
If the user hasn't provided a token address, ask for it before making a BUY decision.

Each conversation is about ONE token: the first token address the user mentions. If the user later mentions a
different address, ignore it. Any BUY decision in this conversation is executed against the first token only.

Be conversational and fun. Show your reasoning."""


def build_portfolio_context(balance_sol: Optional[float], purchases: List[Dict[str, Any]], limit: int = 5) -> str:
    """Holdings block appended to the human turn."""
    lines = ["[PORTFOLIO CONTEXT]"]
    if balance_sol is None:
        lines.append("Wallet balance: unavailable")
    else:
        lines.append(f"Wallet balance: {balance_sol:.4f} SOL")

    if purchases:
        lines.append(f"Recent buys ({min(len(purchases), limit)} of {len(purchases)}):")
        for p in purchases[:limit]:
            lines.append(
                f"- {p.get('tokenSymbol') or 'UNKNOWN'} ({p.get('tokenAddress')}): "
                f"{p.get('amountSol')} SOL for {p.get('amountToken')} tokens"
            )
    else:
        lines.append("No purchases yet.")
    return "\n".join(lines)


def build_market_context(rendered_snapshot: str) -> str:
    return f"[LIVE MARKET DATA]\n{rendered_snapshot}"


def build_lock_note(locked_address: str, ignored_address: Optional[str] = None) -> str:
    note = f"[TOKEN LOCK] This conversation is locked to {locked_address}. Any BUY targets this token."
    if ignored_address:
        note += f" The user mentioned a different address ({ignored_address}); ignore it."
    return note


def build_effective_text(human_text: str, blocks: List[str]) -> str:
    """Human text followed by context blocks. Only human_text is kept in history."""
    parts = [human_text] + [b for b in blocks if b]
    return "\n\n".join(parts)
