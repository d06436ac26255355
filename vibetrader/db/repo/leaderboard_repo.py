"""Read access to leaderboard_cache and purchase aggregates.

The cache table is refreshed by an external batch job; this module never writes
to it outside of tests.
"""
from typing import List, Optional, Dict, Any
from vibetrader.db.connect import get_conn
from vibetrader.core.ids import new_id
from vibetrader.core.time import now_iso

SORT_COLUMNS = {
    "pnl": "total_pnl_usd",
    "trades": "total_trades",
    "winRate": "win_rate",
}


def mask_user_id(user_id: str, user_type: str) -> str:
    """Public display name for a leaderboard entry."""
    if user_type == "user":
        return f"user_{user_id[:4]}..."
    cleaned = user_id.replace("ip:", "")
    return f"anon_***{cleaned[-4:]}"


class LeaderboardRepo:
    """Repository for leaderboard reads."""

    def get_global_stats(self) -> Dict[str, Any]:
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    COUNT(*) AS total_trades,
                    COUNT(DISTINCT user_id) AS total_users,
                    COALESCE(SUM(amount_sol), 0) AS total_volume_sol
                FROM purchases
                WHERE user_id IS NOT NULL
                """
            )
            stats = cursor.fetchone()

            cursor.execute(
                """
                SELECT token_address, token_symbol, COUNT(*) AS trade_count
                FROM purchases
                GROUP BY token_address, token_symbol
                ORDER BY trade_count DESC
                LIMIT 5
                """
            )
            top_tokens = cursor.fetchall()

            cursor.execute(
                """
                SELECT CASE WHEN SUM(total_trades) > 0
                    THEN (CAST(SUM(win_count) AS REAL) / SUM(total_trades)) * 100
                    ELSE 0
                END AS overall_win_rate
                FROM leaderboard_cache
                """
            )
            win_rate_row = cursor.fetchone()

        return {
            "totalTrades": stats["total_trades"] or 0,
            "totalUsersTraded": stats["total_users"] or 0,
            "overallWinRate": float(win_rate_row["overall_win_rate"] or 0),
            "totalVolumeSOL": float(stats["total_volume_sol"] or 0),
            "topTokens": [
                {
                    "address": row["token_address"],
                    "symbol": row["token_symbol"] or "UNKNOWN",
                    "tradeCount": row["trade_count"],
                    "avgPnlPercent": 0,
                }
                for row in top_tokens
            ],
        }

    def get_leaderboard(self, sort_by: str = "pnl", limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """Ranked entries; sort_by must be a key of SORT_COLUMNS."""
        order_column = SORT_COLUMNS[sort_by]
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT user_id, user_type, total_trades, total_invested_sol, total_pnl_usd, win_rate
                FROM leaderboard_cache
                WHERE total_trades > 0
                ORDER BY {order_column} DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset)
            )
            rows = cursor.fetchall()

        return [
            {
                "rank": offset + index + 1,
                "userId": row["user_id"],
                "displayName": mask_user_id(row["user_id"], row["user_type"]),
                "totalTrades": row["total_trades"],
                "totalInvestedSol": float(row["total_invested_sol"]),
                "totalPnlUsd": float(row["total_pnl_usd"]),
                "winRate": float(row["win_rate"]),
            }
            for index, row in enumerate(rows)
        ]

    def get_user_stats(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Stats and pnl rank for one identity, or None if it has no cache row."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT user_id, total_trades, total_invested_sol, total_pnl_usd, win_rate, last_updated
                FROM leaderboard_cache
                WHERE user_id = ?
                """,
                (user_id,)
            )
            row = cursor.fetchone()
            if row is None:
                return None

            cursor.execute(
                """
                SELECT COUNT(*) + 1 AS rank
                FROM leaderboard_cache
                WHERE total_pnl_usd > (SELECT total_pnl_usd FROM leaderboard_cache WHERE user_id = ?)
                """,
                (user_id,)
            )
            rank_row = cursor.fetchone()

        return {
            "totalTrades": row["total_trades"],
            "totalInvestedSol": float(row["total_invested_sol"]),
            "totalPnlUsd": float(row["total_pnl_usd"]),
            "winRate": float(row["win_rate"]),
            "rank": rank_row["rank"] if rank_row else None,
            "lastUpdated": row["last_updated"],
        }

    def upsert_entry(self, entry: Dict[str, Any]) -> None:
        """Write one cache row the way the batch job does."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO leaderboard_cache (
                    id, user_id, user_type, total_trades, total_invested_sol,
                    total_current_value_usd, total_pnl_usd, win_count, win_rate, last_updated
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    total_trades = excluded.total_trades,
                    total_invested_sol = excluded.total_invested_sol,
                    total_current_value_usd = excluded.total_current_value_usd,
                    total_pnl_usd = excluded.total_pnl_usd,
                    win_count = excluded.win_count,
                    win_rate = excluded.win_rate,
                    last_updated = excluded.last_updated
                """,
                (
                    new_id("lb_"),
                    entry["user_id"],
                    entry["user_type"],
                    entry.get("total_trades", 0),
                    entry.get("total_invested_sol", 0.0),
                    entry.get("total_current_value_usd", 0.0),
                    entry.get("total_pnl_usd", 0.0),
                    entry.get("win_count", 0),
                    entry.get("win_rate", 0.0),
                    entry.get("last_updated") or now_iso(),
                )
            )
            conn.commit()
