"""Process-wide Solana signing wallet.

Loaded once at startup from SOLANA_PRIVATE_KEY (base58 or a JSON byte array).
Without a configured key a fresh keypair is generated; its funds are lost on
restart. The secret key is never logged.
"""
import base64
import json
from typing import Any, List, Optional
import httpx
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000


class WalletRPCError(Exception):
    """The Solana JSON-RPC endpoint returned an error."""


def parse_private_key(raw: str) -> Keypair:
    """Keypair from a base58 string or a JSON array of 64 bytes."""
    value = raw.strip()
    if value.startswith("["):
        arr = json.loads(value)
        if not isinstance(arr, list):
            raise ValueError("SOLANA_PRIVATE_KEY JSON must be an integer array.")
        return Keypair.from_bytes(bytes(arr))
    try:
        return Keypair.from_base58_string(value)
    except Exception as e:
        raise ValueError("Unsupported SOLANA_PRIVATE_KEY format.") from e


class Wallet:
    """The sole signing credential. Signing is stateless and safe to share."""

    def __init__(self, keypair: Keypair, rpc_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None, generated: bool = False):
        self._keypair = keypair
        self.rpc_url = rpc_url or get_settings().solana_rpc_url
        self.transport = transport
        self.generated = generated

    @classmethod
    def from_settings(cls) -> "Wallet":
        settings = get_settings()
        if settings.solana_private_key:
            wallet = cls(parse_private_key(settings.solana_private_key))
            logger.info(f"Loaded wallet: {wallet.public_key}")
            return wallet

        wallet = cls(Keypair(), generated=True)
        logger.warning(
            "SOLANA_PRIVATE_KEY not set; generated ephemeral wallet %s. "
            "Funds sent to it are lost on restart.",
            wallet.public_key
        )
        return wallet

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    def sign_transaction(self, transaction_b64: str) -> str:
        """Sign a base64 venue transaction and return it base64 re-encoded."""
        unsigned = VersionedTransaction.from_bytes(base64.b64decode(transaction_b64))
        signed = VersionedTransaction(unsigned.message, [self._keypair])
        return base64.b64encode(bytes(signed)).decode("ascii")

    async def _rpc_call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []}
        async with httpx.AsyncClient(timeout=10.0, transport=self.transport) as client:
            response = await client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        if body.get("error"):
            raise WalletRPCError(f"RPC error for {method}: {body['error']}")
        return body.get("result")

    async def get_balance(self) -> float:
        """Balance in SOL."""
        result = await self._rpc_call("getBalance", [self.public_key])
        lamports = result.get("value", 0) if isinstance(result, dict) else int(result or 0)
        return lamports / LAMPORTS_PER_SOL
