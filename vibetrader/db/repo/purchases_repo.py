"""Trade ledger repository.

Schema (from 001_initial.sql):
  id TEXT PK, token_address, token_symbol, amount_sol, amount_token,
  price_per_token, reasoning, tx_signature UNIQUE, timestamp, user_id,
  user_type, conversation_id, decision_id; UNIQUE(conversation_id, decision_id)
"""
from typing import List, Optional, Dict, Any
from vibetrader.db.connect import get_conn
from vibetrader.core.ids import new_id
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

_SELECT_COLUMNS = """
    id,
    token_address AS tokenAddress,
    token_symbol AS tokenSymbol,
    amount_sol AS amountSol,
    amount_token AS amountToken,
    price_per_token AS pricePerToken,
    reasoning,
    tx_signature AS txSignature,
    timestamp
"""


class PurchasesRepo:
    """Append-only access to the purchases table."""

    def add_purchase(self, purchase: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one purchase row.

        Raises sqlite3.IntegrityError when the tx signature or the
        (conversation_id, decision_id) pair was already recorded.
        """
        purchase_id = new_id("pur_")
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO purchases (
                    id, token_address, token_symbol, amount_sol, amount_token,
                    price_per_token, reasoning, tx_signature, timestamp,
                    user_id, user_type, conversation_id, decision_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    purchase_id,
                    purchase["token_address"],
                    purchase.get("token_symbol") or "UNKNOWN",
                    purchase["amount_sol"],
                    purchase["amount_token"],
                    purchase["price_per_token"],
                    purchase["reasoning"],
                    purchase["tx_signature"],
                    purchase["timestamp"],
                    purchase.get("user_id"),
                    purchase.get("user_type"),
                    purchase.get("conversation_id"),
                    purchase.get("decision_id"),
                )
            )
            conn.commit()
        logger.info(
            "Purchase recorded: %s token=%s tx=%s",
            purchase_id, purchase["token_address"], purchase["tx_signature"]
        )
        return {"id": purchase_id, **purchase}

    def list_purchases(self) -> List[Dict[str, Any]]:
        """All purchases, newest first."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_SELECT_COLUMNS} FROM purchases ORDER BY timestamp DESC")
            rows = cursor.fetchall()
        return [dict(row) for row in rows]

    def list_by_token(self, token_address: str) -> List[Dict[str, Any]]:
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_SELECT_COLUMNS} FROM purchases WHERE token_address = ? ORDER BY timestamp DESC",
                (token_address,)
            )
            rows = cursor.fetchall()
        return [dict(row) for row in rows]

    def get_by_decision(self, conversation_id: str, decision_id: str) -> Optional[Dict[str, Any]]:
        """Look up the purchase produced by a given decision, if any."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_SELECT_COLUMNS} FROM purchases WHERE conversation_id = ? AND decision_id = ?",
                (conversation_id, decision_id)
            )
            row = cursor.fetchone()
        return dict(row) if row else None

    def count(self) -> int:
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS n FROM purchases")
            return cursor.fetchone()["n"]

    def update_symbol(self, purchase_id: str, token_symbol: str) -> None:
        """Backfill a display symbol that was unknown at purchase time."""
        with get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE purchases SET token_symbol = ? WHERE id = ? AND token_symbol = 'UNKNOWN'",
                (token_symbol, purchase_id)
            )
            conn.commit()
