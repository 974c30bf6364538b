import time

from fastapi import APIRouter, HTTPException

from ..exchange import make_candle, parse_kline_dict
from ..models import KlineIn, PriceMovementIn
from ..state import manager, strategy

router = APIRouter()


@router.post("/process-kline")
async def process_kline(kline: KlineIn):
    payload = kline.model_dump()
    # untimed klines are stamped on arrival
    if payload["closeTime"] <= 0:
        payload["closeTime"] = int(time.time() * 1000)
    try:
        candle = parse_kline_dict(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not await manager.feed(candle):
        return {"message": "Kline skipped, already past its close time", "symbol": candle.symbol}
    return {"message": "Kline processed", "symbol": candle.symbol}


@router.post("/simulate-price-movement")
async def simulate_price_movement(data: PriceMovementIn):
    """Feed a price path as candles whose open is the previous price."""
    symbol = data.symbol.upper()
    now = int(time.time() * 1000)
    last = manager.last_close_time(symbol)
    if last is not None and last >= now:
        now = last + 1000
    try:
        candles = [
            make_candle(
                symbol,
                now + i * 1000 - 1000,
                now + i * 1000,
                data.prices[i - 1] if i > 0 else px,
                None, None, px, 1000,
            )
            for i, px in enumerate(data.prices)
        ]
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    for c in candles:
        await manager.feed(c)
    return strategy.get_status()
