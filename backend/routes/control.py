"""
Control endpoints: start/stop trading, cancel orders, balances, status.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from exchange import ExchangeError
from .deps import get_orchestrator, verify_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", dependencies=[Depends(verify_api_key)])


@router.get("/status")
async def get_status(orchestrator=Depends(get_orchestrator)):
    """Trading flag, indicators, orders and stream state"""
    return orchestrator.get_status()


@router.get("/balances")
async def get_balances(orchestrator=Depends(get_orchestrator)):
    """Non-zero free balances, fetched fresh from the exchange"""
    try:
        balances = await orchestrator.get_balances()
    except Exception as e:
        logger.error(f"Balance request failed: {e}")
        raise HTTPException(status_code=502, detail=f"Exchange error: {e}")
    return {"balances": balances}


@router.get("/orders")
async def get_orders(limit: int = 50, orchestrator=Depends(get_orchestrator)):
    manager = orchestrator.order_manager
    return {
        "active": manager.get_orders(),
        "history": manager.get_order_history(limit),
        "realized_profit": manager.realized_profit,
    }


@router.post("/trading/start")
async def start_trading(orchestrator=Depends(get_orchestrator)):
    changed = await orchestrator.enable_trading(changed_by="api")
    return {"trading_enabled": True, "changed": changed}


@router.post("/trading/stop")
async def stop_trading(orchestrator=Depends(get_orchestrator)):
    changed = await orchestrator.disable_trading(changed_by="api")
    return {"trading_enabled": False, "changed": changed}


@router.delete("/orders/{order_id}")
async def cancel_order(order_id: str, orchestrator=Depends(get_orchestrator)):
    try:
        confirmed = await orchestrator.cancel_order(order_id)
    except ExchangeError as e:
        if e.status == 400 or e.status == 404:
            raise HTTPException(status_code=404, detail=f"Order {order_id}: {e.message}")
        raise HTTPException(status_code=502, detail=f"Exchange error: {e}")
    except Exception as e:
        logger.error(f"Cancel {order_id} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Exchange error: {e}")

    if not confirmed:
        raise HTTPException(status_code=409, detail=f"Cancel of {order_id} not confirmed")
    return {"order_id": order_id, "canceled": True}
