from fastapi import APIRouter, HTTPException
from ..config import TOP_SYMBOLS
from ..models import StartIn, SymbolIn
from ..state import manager

router = APIRouter()


@router.get("/trading")
async def trading_status():
    return manager.get_trading_status()


@router.post("/trading/start")
async def start_trading(body: StartIn):
    count = body.count if body.count is not None else TOP_SYMBOLS
    try:
        started = await manager.start(count)
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"start failed: {e}")
    return {"started": started, **manager.get_trading_status()}


@router.post("/trading/stop")
async def stop_trading():
    stopped = await manager.stop()
    return {"stopped": stopped, **manager.get_trading_status()}


@router.post("/symbols")
async def add_symbol(body: SymbolIn):
    added = await manager.add_symbol(body.symbol)
    return {"added": added, "symbol": body.symbol.upper()}


@router.delete("/symbols/{symbol}")
async def remove_symbol(symbol: str):
    if not manager.remove_symbol(symbol):
        raise HTTPException(status_code=404, detail=f"{symbol.upper()} is not tracked")
    return {"removed": True, "symbol": symbol.upper()}
