"""Jupiter Ultra swap venue client.

Two calls per swap: GET /order builds an unsigned transaction for the taker,
POST /execute submits the signed transaction under the order's requestId.
"""
from typing import Any, Dict, Optional
import httpx
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"


class JupiterError(Exception):
    """Venue returned a non-2xx response."""

    def __init__(self, operation: str, status_code: int, body: str):
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(f"Jupiter {operation} failed: HTTP {status_code} - {body[:200]}")


class JupiterCredentialsError(Exception):
    """JUPITER_API_KEY is not configured."""


class JupiterUltraClient:
    """Thin async client for the Ultra order/execute endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None
    ):
        settings = get_settings()
        self.api_key = api_key or settings.jupiter_api_key
        self.api_url = (api_url or settings.jupiter_api_url).rstrip("/")
        self.transport = transport
        self.timeout = timeout or settings.venue_timeout_seconds

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise JupiterCredentialsError("JUPITER_API_KEY environment variable is required")
        return {"x-api-key": self.api_key}

    async def get_order(self, output_mint: str, amount_lamports: int, taker: str,
                        input_mint: str = SOL_MINT) -> Dict[str, Any]:
        """Request an unsigned swap transaction.

        Returns the venue order: transaction (base64), requestId, inAmount,
        outAmount (subunit integer strings) and routing metadata.
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount_lamports),
            "taker": taker,
        }
        headers = self._headers()
        logger.info(f"Requesting order: {amount_lamports} lamports {input_mint} -> {output_mint}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(f"{self.api_url}/order", params=params, headers=headers)

        if response.status_code >= 400:
            raise JupiterError("order", response.status_code, response.text)
        return response.json()

    async def execute(self, signed_transaction: str, request_id: str) -> Dict[str, Any]:
        """Submit a signed transaction. The response carries status and signature."""
        headers = {**self._headers(), "Content-Type": "application/json"}
        payload = {"signedTransaction": signed_transaction, "requestId": request_id}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(f"{self.api_url}/execute", json=payload, headers=headers)

        if response.status_code >= 400:
            raise JupiterError("execute", response.status_code, response.text)
        return response.json()
