from fastapi import APIRouter
from ..config import DEFAULT_CONFIG
from ..state import ledger, strategy

router = APIRouter()


@router.get("/status")
async def status():
    return strategy.get_status()


@router.get("/stats")
async def stats():
    strategy.log_stats()
    return ledger.get_stats().to_dict()


@router.get("/config")
async def get_config():
    return DEFAULT_CONFIG


@router.get("/orders/recent")
async def recent_orders(limit: int = 50):
    limit = max(1, min(200, limit))
    return list(reversed(ledger.events[-limit:]))
