# backend/hedger/exchange.py
import math
import time
from typing import Any, Dict, List, Optional, Sequence

from binance import AsyncClient

from .config import QUOTE_ASSET, USE_TESTNET
from .logging_utils import setup_logger
from .types import Candle

logger = setup_logger("exchange")


def _price(value: Any, name: str) -> float:
    try:
        px = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} is not a number: {value!r}")
    if not math.isfinite(px) or px <= 0:
        raise ValueError(f"{name} must be a positive finite number, got {value!r}")
    return px


def _num(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


def make_candle(symbol: str, open_time: Any, close_time: Any, o: Any, h: Any, l: Any, c: Any, v: Any) -> Candle:
    """Single parse point for prices; everything downstream works on floats."""
    op = _price(o, "open")
    cl = _price(c, "close")
    return Candle(
        symbol=symbol.upper(),
        open_time=int(open_time),
        close_time=int(close_time),
        open=op,
        high=_num(h, max(op, cl)),
        low=_num(l, min(op, cl)),
        close=cl,
        volume=_num(v),
    )


def parse_kline_row(symbol: str, row: Sequence[Any]) -> Candle:
    """REST kline row: [openTime, open, high, low, close, volume, closeTime, ...]."""
    return make_candle(symbol, row[0], row[6], row[1], row[2], row[3], row[4], row[5])


def parse_kline_dict(d: Dict[str, Any]) -> Candle:
    """Plain kline dict as accepted by the HTTP surface (camelCase keys)."""
    if not d.get("symbol"):
        raise ValueError("symbol is required")
    return make_candle(
        d["symbol"], d.get("openTime", 0), d.get("closeTime", 0),
        d.get("open"), d.get("high"), d.get("low"), d.get("close"), d.get("volume"),
    )


def parse_kline_event(msg: Dict[str, Any]) -> Optional[Candle]:
    """Websocket kline event; returns None while the kline is still open."""
    k = msg.get("k") or {}
    if not k.get("x"):
        return None
    return make_candle(k.get("s") or msg.get("s", ""), k["t"], k["T"], k["o"], k["h"], k["l"], k["c"], k.get("v"))


async def make_client(api_key: Optional[str], api_secret: Optional[str]) -> AsyncClient:
    return await AsyncClient.create(api_key=api_key, api_secret=api_secret, testnet=USE_TESTNET)


async def get_top_symbols(cli: AsyncClient, limit: int = 20, quote: str = QUOTE_ASSET) -> List[str]:
    tickers = await cli.get_ticker()
    pairs = [t for t in tickers if t.get("symbol", "").endswith(quote)]
    pairs.sort(key=lambda t: float(t.get("volume") or 0.0), reverse=True)
    symbols = [t["symbol"] for t in pairs[:limit]]
    logger.info("top %d %s pairs: %s...", len(symbols), quote, ", ".join(symbols[:5]))
    return symbols


async def get_current_price(cli: AsyncClient, symbol: str) -> Optional[float]:
    try:
        r = await cli.get_symbol_ticker(symbol=symbol.upper())
        return float(r["price"])
    except Exception as e:
        logger.warning("price lookup failed for %s: %s", symbol, e)
        return None


async def get_historical_candles(cli: AsyncClient, symbol: str, interval: str, limit: int) -> List[Candle]:
    ks = await cli.get_klines(symbol=symbol.upper(), interval=interval, limit=limit)
    now = int(time.time() * 1000)
    # the last REST kline is usually still forming
    return [parse_kline_row(symbol, k) for k in ks if int(k[6]) < now]
