"""Token market snapshot: normalization and rendering.

Upstream token records mix string and numeric encodings and report price
changes as fractions. normalize_token_result() maps them onto TokenSnapshot,
where counts and volumes default to 0 and price/cap style values default to
None ("unknown", not zero).

format_snapshot() is a pure function of the snapshot: ages are measured
against snapshot.fetched_at, never against the wall clock.
"""
import re
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, List
from vibetrader.core.time import to_iso


@dataclass
class TokenSnapshot:
    """Point-in-time market state for one token."""
    address: str
    name: str = "Unknown"
    symbol: str = "???"
    price_usd: Optional[float] = None
    liquidity: float = 0.0
    market_cap: Optional[float] = None
    circulating_market_cap: Optional[float] = None
    pair_created_at: Optional[datetime] = None
    last_transaction: Optional[datetime] = None
    dex: str = "unknown"
    pair_address: str = ""
    holders: Optional[int] = None

    price_change_5m: float = 0.0
    price_change_1h: float = 0.0
    price_change_4h: float = 0.0
    price_change_12h: float = 0.0
    price_change_24h: float = 0.0

    high_24h: Optional[float] = None
    low_24h: Optional[float] = None

    volume_5m: float = 0.0
    volume_1h: float = 0.0
    volume_4h: float = 0.0
    volume_12h: float = 0.0
    volume_24h: float = 0.0

    buys_5m: int = 0
    buys_1h: int = 0
    buys_4h: int = 0
    buys_12h: int = 0
    buys_24h: int = 0
    buy_volume_24h: float = 0.0

    sells_5m: int = 0
    sells_1h: int = 0
    sells_4h: int = 0
    sells_12h: int = 0
    sells_24h: int = 0
    sell_volume_24h: float = 0.0

    unique_buyers_24h: int = 0
    unique_sellers_24h: int = 0

    is_scam: bool = False
    sniper_count: int = 0
    sniper_held_percent: float = 0.0
    bundler_count: int = 0
    bundler_held_percent: float = 0.0
    insider_count: int = 0
    insider_held_percent: float = 0.0
    dev_held_percent: float = 0.0
    new_wallet_percent_1d: float = 0.0
    new_wallet_percent_7d: float = 0.0

    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict (datetimes as ISO strings) for the snapshot cache."""
        data = asdict(self)
        for key in ("pair_created_at", "last_transaction", "fetched_at"):
            if data[key] is not None:
                data[key] = to_iso(data[key])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSnapshot":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for key in ("pair_created_at", "last_transaction", "fetched_at"):
            if isinstance(values.get(key), str):
                values[key] = datetime.fromisoformat(values[key].replace("Z", "+00:00"))
        if values.get("fetched_at") is None:
            values.pop("fetched_at", None)
        return cls(**values)


def parse_num(value: Any) -> float:
    """String-or-number to float; missing or unparseable means 0."""
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_num_or_none(value: Any) -> Optional[float]:
    """String-or-number to float; missing or unparseable means unknown."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _count(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _from_unix(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def normalize_token_result(
    raw: Dict[str, Any],
    fallback_address: Optional[str] = None,
    fetched_at: Optional[datetime] = None
) -> TokenSnapshot:
    """Map one raw filterTokens result onto a TokenSnapshot."""
    token = raw.get("token") or {}
    exchanges = raw.get("exchanges") or []
    pair = raw.get("pair") or {}
    holders = raw.get("holders")

    return TokenSnapshot(
        address=token.get("address") or fallback_address or "",
        name=token.get("name") or "Unknown",
        symbol=token.get("symbol") or "???",
        price_usd=parse_num_or_none(raw.get("priceUSD")),
        liquidity=parse_num(raw.get("liquidity")),
        market_cap=parse_num_or_none(raw.get("marketCap")),
        circulating_market_cap=parse_num_or_none(raw.get("circulatingMarketCap")),
        pair_created_at=_from_unix(raw.get("createdAt")),
        last_transaction=_from_unix(raw.get("lastTransaction")),
        dex=((exchanges[0] or {}).get("name") if exchanges else None) or "unknown",
        pair_address=pair.get("address") or "",
        holders=_count(holders) if holders is not None else None,
        # Fractions upstream, percentages here
        price_change_5m=parse_num(raw.get("change5m")) * 100,
        price_change_1h=parse_num(raw.get("change1")) * 100,
        price_change_4h=parse_num(raw.get("change4")) * 100,
        price_change_12h=parse_num(raw.get("change12")) * 100,
        price_change_24h=parse_num(raw.get("change24")) * 100,
        high_24h=parse_num_or_none(raw.get("high24")),
        low_24h=parse_num_or_none(raw.get("low24")),
        volume_5m=parse_num(raw.get("volume5m")),
        volume_1h=parse_num(raw.get("volume1")),
        volume_4h=parse_num(raw.get("volume4")),
        volume_12h=parse_num(raw.get("volume12")),
        volume_24h=parse_num(raw.get("volume24")),
        buys_5m=_count(raw.get("buyCount5m")),
        buys_1h=_count(raw.get("buyCount1")),
        buys_4h=_count(raw.get("buyCount4")),
        buys_12h=_count(raw.get("buyCount12")),
        buys_24h=_count(raw.get("buyCount24")),
        buy_volume_24h=parse_num(raw.get("buyVolume24")),
        sells_5m=_count(raw.get("sellCount5m")),
        sells_1h=_count(raw.get("sellCount1")),
        sells_4h=_count(raw.get("sellCount4")),
        sells_12h=_count(raw.get("sellCount12")),
        sells_24h=_count(raw.get("sellCount24")),
        sell_volume_24h=parse_num(raw.get("sellVolume24")),
        unique_buyers_24h=_count(raw.get("uniqueBuys24")),
        unique_sellers_24h=_count(raw.get("uniqueSells24")),
        is_scam=bool(raw.get("isScam") or False),
        sniper_count=_count(raw.get("sniperCount")),
        sniper_held_percent=parse_num(raw.get("sniperHeldPercentage")),
        bundler_count=_count(raw.get("bundlerCount")),
        bundler_held_percent=parse_num(raw.get("bundlerHeldPercentage")),
        insider_count=_count(raw.get("insiderCount")),
        insider_held_percent=parse_num(raw.get("insiderHeldPercentage")),
        dev_held_percent=parse_num(raw.get("devHeldPercentage")),
        new_wallet_percent_1d=parse_num(raw.get("swapPct1dOldWallet")),
        new_wallet_percent_7d=parse_num(raw.get("swapPct7dOldWallet")),
        fetched_at=fetched_at or datetime.now(timezone.utc),
    )


_SMALL_PRICE_RE = re.compile(r"^0\.(0*)([1-9]\d*)")


def format_price(price: Optional[float]) -> str:
    """Human price; sub-cent prices use 0.0{zeros}digits notation."""
    if not price:
        return "0"
    if price >= 1:
        return f"{price:,.2f}"
    if price >= 0.01:
        return f"{price:.4f}"

    match = _SMALL_PRICE_RE.match(f"{price:.20f}")
    if match:
        zeros = len(match.group(1))
        significant = match.group(2)[:4]
        if zeros >= 3:
            return f"0.0{{{zeros}}}{significant}"
        return f"{price:.{zeros + 4}f}"
    return f"{price:.4g}"


def format_number(num: float) -> str:
    if num >= 1_000_000_000:
        return f"{num / 1_000_000_000:.2f}B"
    if num >= 1_000_000:
        return f"{num / 1_000_000:.2f}M"
    if num >= 1_000:
        return f"{num / 1_000:.2f}K"
    return f"{num:.2f}"


def format_change(value: float) -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.2f}%"


def format_age(since: datetime, reference: datetime) -> str:
    diff_seconds = max(0.0, (reference - since).total_seconds())
    days = int(diff_seconds // 86400)
    hours = int(diff_seconds // 3600)
    minutes = int(diff_seconds // 60)

    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} old"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} old"
    return f"{minutes} minute{'s' if minutes > 1 else ''} old"


def format_snapshot(s: TokenSnapshot) -> str:
    """Multi-section text rendering injected into the agent's context."""
    age = format_age(s.pair_created_at, s.fetched_at) if s.pair_created_at else "Unknown age"
    last_active = format_age(s.last_transaction, s.fetched_at) if s.last_transaction else None
    buy_sell_ratio = f"{s.buys_24h / s.sells_24h:.2f}" if s.sells_24h > 0 else "∞"

    lines: List[Optional[str]] = [
        f"=== {s.name} ({s.symbol}) ===",
        f"Address: {s.address}",
        f"Price: ${format_price(s.price_usd)}" if s.price_usd is not None else "Price: N/A",
        "⚠️ FLAGGED AS SCAM ⚠️" if s.is_scam else None,
        "",
        "-- Price Changes --",
        (
            f"5m: {format_change(s.price_change_5m)} | 1h: {format_change(s.price_change_1h)} | "
            f"4h: {format_change(s.price_change_4h)} | 12h: {format_change(s.price_change_12h)} | "
            f"24h: {format_change(s.price_change_24h)}"
        ),
        (
            f"24h Range: ${format_price(s.low_24h)} - ${format_price(s.high_24h)}"
            if s.high_24h and s.low_24h else None
        ),
        "",
        "-- Market Stats --",
        f"Liquidity: ${format_number(s.liquidity)}",
        f"Market Cap: {'$' + format_number(s.market_cap) if s.market_cap else 'N/A'}",
        f"Circulating MCap: ${format_number(s.circulating_market_cap)}" if s.circulating_market_cap else None,
        f"Holders: {s.holders:,}" if s.holders else None,
        "",
        "-- Volume --",
        (
            f"5m: ${format_number(s.volume_5m)} | 1h: ${format_number(s.volume_1h)} | "
            f"4h: ${format_number(s.volume_4h)} | 24h: ${format_number(s.volume_24h)}"
        ),
        "",
        "-- Trading Activity (24h) --",
        f"Buys: {s.buys_24h} ({s.unique_buyers_24h} unique) | Volume: ${format_number(s.buy_volume_24h)}",
        f"Sells: {s.sells_24h} ({s.unique_sellers_24h} unique) | Volume: ${format_number(s.sell_volume_24h)}",
        f"Buy/Sell Ratio: {buy_sell_ratio}",
        "",
        "-- Recent Activity --",
        f"5m: {s.buys_5m} buys / {s.sells_5m} sells | 1h: {s.buys_1h} buys / {s.sells_1h} sells",
        "",
        "-- Risk Indicators --",
        f"Snipers: {s.sniper_count} (holding {s.sniper_held_percent:.1f}%)",
        f"Bundlers: {s.bundler_count} (holding {s.bundler_held_percent:.1f}%)",
        f"Insiders: {s.insider_count} (holding {s.insider_held_percent:.1f}%)",
        f"Dev Holdings: {s.dev_held_percent:.1f}%" if s.dev_held_percent > 0 else None,
        f"New Wallets (<1d): {s.new_wallet_percent_1d:.1f}%" if s.new_wallet_percent_1d > 0 else None,
        f"New Wallets (<7d): {s.new_wallet_percent_7d:.1f}%" if s.new_wallet_percent_7d > 0 else None,
        "",
        "-- Token Info --",
        f"Age: {age}",
        f"Last Activity: {last_active}" if last_active else None,
        f"DEX: {s.dex}",
        f"Pair: {s.pair_address}" if s.pair_address else None,
    ]
    return "\n".join(line for line in lines if line is not None)


def snapshot_preview(s: TokenSnapshot) -> Dict[str, Any]:
    """Compact card for the `token` stream event."""
    return {
        "address": s.address,
        "name": s.name,
        "symbol": s.symbol,
        "priceUsd": s.price_usd,
        "priceChange24h": s.price_change_24h,
        "marketCap": s.market_cap,
        "liquidity": s.liquidity,
        "volume24h": s.volume_24h,
        "holders": s.holders,
        "age": format_age(s.pair_created_at, s.fetched_at) if s.pair_created_at else None,
        "isScam": s.is_scam,
    }
