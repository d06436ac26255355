"""Development-only endpoints. Never mounted when APP_ENV=production."""
import asyncio
from typing import Optional
import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from vibetrader.api.deps import get_components, get_identity
from vibetrader.core.error_codes import ExecutionError
from vibetrader.core.logging import get_logger
from vibetrader.providers.jupiter_provider import JupiterError, JupiterCredentialsError

logger = get_logger(__name__)

router = APIRouter()

DEFAULT_TEST_AMOUNT_SOL = 0.001


class TestSwapRequest(BaseModel):
    outputMint: Optional[str] = None
    amountSol: float = Field(DEFAULT_TEST_AMOUNT_SOL, gt=0)


@router.post("/reset-rate-limit")
async def reset_rate_limit(components=Depends(get_components), identity=Depends(get_identity)):
    user_id, _ = identity
    await asyncio.to_thread(components.quota_gate.reset, user_id)
    logger.info(f"[DEV] Rate limit reset for: {user_id}")
    return {"success": True, "identifier": user_id}


@router.post("/test-swap-order")
async def test_swap_order(body: TestSwapRequest, components=Depends(get_components)):
    """Fetch an order without signing or submitting it."""
    if not body.outputMint:
        raise HTTPException(status_code=400, detail="outputMint is required")

    logger.info("[DEV] Testing swap order: %s SOL -> %s", body.amountSol, body.outputMint)
    try:
        order = await components.executor.get_order(body.outputMint, body.amountSol)
    except (JupiterError, JupiterCredentialsError, httpx.HTTPError) as e:
        logger.error("[DEV] Swap order test failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})
    logger.info("[DEV] Order received: requestId=%s", order.get("requestId"))
    return {"success": True, "order": order}


@router.post("/test-swap-execute")
async def test_swap_execute(body: TestSwapRequest, components=Depends(get_components)):
    """Run a real swap with a capped amount."""
    if not body.outputMint:
        raise HTTPException(status_code=400, detail="outputMint is required")
    cap = components.settings.dev_max_test_swap_sol
    if body.amountSol > cap:
        raise HTTPException(status_code=400, detail=f"Dev test limited to {cap:g} SOL max")

    logger.warning("[DEV] Executing swap: %s SOL -> %s", body.amountSol, body.outputMint)
    try:
        result = await components.executor.execute(body.outputMint, body.amountSol)
    except ExecutionError as e:
        return JSONResponse(status_code=500, content={"error": e.to_dict()})
    logger.info("[DEV] Swap executed: %s", result.signature)
    return {"success": True, "result": result.to_dict()}
