"""Daily quota counters, keyed by (identifier, date)."""
from typing import Optional
from vibetrader.db.connect import get_conn
from vibetrader.core.ids import new_id
from vibetrader.core.time import now_iso


class QuotaRepo:
    """Repository for the rate_limits table."""

    def get_count(self, identifier: str, date: str) -> int:
        """Today's interaction count (0 when no row exists)."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT interaction_count FROM rate_limits WHERE identifier = ? AND date = ?",
                (identifier, date)
            )
            row = cursor.fetchone()
        return row["interaction_count"] if row else 0

    def increment(self, identifier: str, identifier_type: str, date: str) -> int:
        """Upsert-increment the counter and return the post-increment count."""
        now = now_iso()
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO rate_limits (
                    id, identifier, identifier_type, date, interaction_count, created_at, updated_at
                ) VALUES (?, ?, ?, ?, 1, ?, ?)
                ON CONFLICT (identifier, date)
                DO UPDATE SET
                    interaction_count = rate_limits.interaction_count + 1,
                    updated_at = excluded.updated_at
                RETURNING interaction_count
                """,
                (new_id("rl_"), identifier, identifier_type, date, now, now)
            )
            row = cursor.fetchone()
            conn.commit()
        return row["interaction_count"]

    def delete(self, identifier: str, date: Optional[str] = None) -> int:
        """Delete the counter row for one day (or every day when date is None)."""
        with get_conn() as conn:
            cursor = conn.cursor()
            if date is None:
                cursor.execute("DELETE FROM rate_limits WHERE identifier = ?", (identifier,))
            else:
                cursor.execute(
                    "DELETE FROM rate_limits WHERE identifier = ? AND date = ?",
                    (identifier, date)
                )
            conn.commit()
            return cursor.rowcount
