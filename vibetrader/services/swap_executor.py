"""One-shot SOL -> token swap against the venue.

Every failure is terminal for the call; nothing is retried. A failure at or
after SUBMITTED does not mean funds are unspent, only that no ExecutionResult
was produced.

Amounts: the input side is SOL, converted to lamports (10^9). The venue's
outAmount is downscaled by the same exponent.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict
import httpx
from vibetrader.core.error_codes import ExecutionError, PipelineErrorCode
from vibetrader.core.ids import new_id
from vibetrader.core.logging import get_logger
from vibetrader.orchestrator.state_machine import SwapLifecycle, SwapState
from vibetrader.providers.jupiter_provider import JupiterUltraClient, JupiterError, JupiterCredentialsError
from vibetrader.services.wallet import LAMPORTS_PER_SOL

logger = get_logger(__name__)

VENUE_SUCCESS_STATUS = "Success"


@dataclass(frozen=True)
class ExecutionResult:
    """A settled swap."""
    signature: str
    token_address: str
    input_amount: float
    output_amount: float
    output_amount_raw: int
    price_per_token: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def to_lamports(amount_sol: float) -> int:
    return int(round(amount_sol * LAMPORTS_PER_SOL))


class SwapExecutor:
    """Order -> sign -> submit, tracked by a SwapLifecycle."""

    def __init__(self, venue: JupiterUltraClient, wallet):
        self.venue = venue
        self.wallet = wallet

    def _fail(self, lifecycle: SwapLifecycle, code: PipelineErrorCode, message: str,
              details: Dict[str, Any] = None) -> ExecutionError:
        phase = lifecycle.fail()
        logger.error(f"Swap {lifecycle.execution_id} failed in {phase.value}: {message}")
        return ExecutionError(code, message, phase=phase.value, details=details)

    async def get_order(self, target: str, amount_sol: float) -> Dict[str, Any]:
        """Order phase only; nothing is signed or submitted."""
        return await self.venue.get_order(target, to_lamports(amount_sol), self.wallet.public_key)

    async def execute(self, target: str, amount_sol: float) -> ExecutionResult:
        """Spend amount_sol on target. Raises ExecutionError on any failure."""
        lifecycle = SwapLifecycle(new_id("swp_"))
        amount_lamports = to_lamports(amount_sol)
        logger.info(
            "Swap %s: %s SOL (%d lamports) -> %s",
            lifecycle.execution_id, amount_sol, amount_lamports, target
        )

        # Order
        try:
            order = await self.venue.get_order(target, amount_lamports, self.wallet.public_key)
        except JupiterCredentialsError as e:
            raise self._fail(lifecycle, PipelineErrorCode.CREDENTIALS_MISSING, str(e)) from e
        except (JupiterError, httpx.HTTPError, ValueError) as e:
            raise self._fail(lifecycle, PipelineErrorCode.ORDER_FAILED, str(e)) from e

        if not isinstance(order, dict):
            raise self._fail(
                lifecycle, PipelineErrorCode.ORDER_FAILED,
                f"Order response is not an object: {type(order).__name__}",
            )
        transaction = order.get("transaction")
        request_id = order.get("requestId")
        if not transaction or not request_id:
            raise self._fail(
                lifecycle, PipelineErrorCode.ORDER_FAILED,
                "Order response missing transaction or requestId",
                details={"errorMessage": order.get("errorMessage")},
            )
        try:
            out_amount_raw = int(order.get("outAmount") or 0)
        except (TypeError, ValueError) as e:
            raise self._fail(lifecycle, PipelineErrorCode.ORDER_FAILED, f"Bad outAmount: {order.get('outAmount')!r}") from e
        lifecycle.advance(SwapState.ORDERED)
        logger.info(
            "Swap %s ordered: requestId=%s inAmount=%s outAmount=%s",
            lifecycle.execution_id, request_id, order.get("inAmount"), out_amount_raw
        )

        # Sign
        try:
            signed_transaction = self.wallet.sign_transaction(transaction)
        except Exception as e:
            raise self._fail(lifecycle, PipelineErrorCode.SIGNING_FAILED, f"Signing failed: {type(e).__name__}") from e
        lifecycle.advance(SwapState.SIGNED)

        # Submit
        lifecycle.advance(SwapState.SUBMITTED)
        try:
            result = await self.venue.execute(signed_transaction, request_id)
        except (JupiterError, httpx.HTTPError, ValueError) as e:
            raise self._fail(lifecycle, PipelineErrorCode.SUBMIT_FAILED, str(e)) from e

        if not isinstance(result, dict):
            raise self._fail(
                lifecycle, PipelineErrorCode.SUBMIT_FAILED,
                f"Execute response is not an object: {type(result).__name__}",
            )
        status = result.get("status")
        if status != VENUE_SUCCESS_STATUS:
            raise self._fail(
                lifecycle, PipelineErrorCode.VENUE_STATUS_NOT_SUCCESS,
                f"Swap execution failed with status: {status}",
                details={"status": status, "signature": result.get("signature"), "error": result.get("error")},
            )

        signature = result.get("signature")
        if not signature:
            # Settled per the venue but nothing to key the ledger on
            raise self._fail(
                lifecycle, PipelineErrorCode.SUBMIT_FAILED,
                "Venue reported success without a transaction signature",
                details={"status": status},
            )

        output_amount = out_amount_raw / LAMPORTS_PER_SOL
        lifecycle.advance(SwapState.SETTLED)
        execution = ExecutionResult(
            signature=signature,
            token_address=target,
            input_amount=amount_sol,
            output_amount=output_amount,
            output_amount_raw=out_amount_raw,
            price_per_token=amount_sol / output_amount if output_amount else 0.0,
        )
        logger.info(f"Swap {lifecycle.execution_id} settled: tx={execution.signature}")
        return execution
