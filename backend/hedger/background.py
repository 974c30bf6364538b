# backend/hedger/background.py
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from binance import AsyncClient, BinanceSocketManager

from .config import (
    BACKFILL_BATCH,
    BACKFILL_LIMIT,
    BACKFILL_PAUSE_SEC,
    SYMBOLS,
    TIMEFRAME,
    TOP_SYMBOLS,
)
from .exchange import get_current_price, get_historical_candles, get_top_symbols, parse_kline_event
from .logging_utils import setup_logger
from .strategy import StrategyEngine
from .types import Candle

logger = setup_logger("manager")

ClientFactory = Callable[[], Awaitable[AsyncClient]]

RECONNECT_DELAY_SEC = 5


class SymbolManager:
    """Feeds exchange klines into the strategy.

    Backfills history in paced batches, then follows closed klines over
    websockets. Candles of one symbol go through a per-symbol lock so they
    reach the strategy strictly in order.
    """

    def __init__(
        self,
        strategy: StrategyEngine,
        client_factory: ClientFactory,
        timeframe: str = TIMEFRAME,
        backfill_limit: int = BACKFILL_LIMIT,
        batch_size: int = BACKFILL_BATCH,
        batch_pause_sec: float = BACKFILL_PAUSE_SEC,
    ):
        self.strategy = strategy
        self.client_factory = client_factory
        self.timeframe = timeframe
        self.backfill_limit = backfill_limit
        self.batch_size = max(1, batch_size)
        self.batch_pause_sec = batch_pause_sec

        self.active_symbols: List[str] = []
        self.is_trading = False
        self._locks: Dict[str, asyncio.Lock] = {}
        self._client: Optional[AsyncClient] = None
        self._stop_event = asyncio.Event()
        self._socket_tasks: Dict[str, asyncio.Task] = {}
        # cancelled by remove_symbol, awaited on stop
        self._retired_tasks: List[asyncio.Task] = []
        # close_time of the last candle fed per symbol
        self._last_close: Dict[str, int] = {}

    def _lock(self, symbol: str) -> asyncio.Lock:
        lock = self._locks.get(symbol)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[symbol] = lock
        return lock

    # ---- lifecycle --------------------------------------------------------

    async def start(self, count: int = TOP_SYMBOLS, stream: bool = True) -> bool:
        if self.is_trading:
            logger.warning("trading already running")
            return False

        cli = await self.client_factory()
        try:
            symbols = await get_top_symbols(cli, count) if count > 0 else list(SYMBOLS)
            if not symbols:
                raise RuntimeError("no symbols to trade")
            ok, failed = await self._backfill(cli, symbols)
        except Exception:
            await cli.close_connection()
            raise

        self.active_symbols += [s for s in ok if s not in self.active_symbols]
        self._client = cli
        self._stop_event.clear()
        self.is_trading = True
        logger.info("trading started on %d symbols (%d failed backfill)", len(ok), len(failed))

        if stream:
            for sym in self.active_symbols:
                if sym not in self._socket_tasks:
                    self._start_socket(sym)
        return True

    async def stop(self) -> bool:
        if not self.is_trading:
            logger.warning("trading is not running")
            return False
        self.is_trading = False
        self._stop_event.set()
        for t in list(self._socket_tasks.values()) + self._retired_tasks:
            t.cancel()
            try:
                await t
            except asyncio.CancelledError:
                pass
        self._socket_tasks.clear()
        self._retired_tasks.clear()
        if self._client:
            await self._client.close_connection()
            self._client = None
        logger.info("trading stopped")
        return True

    # ---- backfill ---------------------------------------------------------

    async def _backfill(self, cli: AsyncClient, symbols: List[str]):
        ok: List[str] = []
        failed: List[str] = []
        for i in range(0, len(symbols), self.batch_size):
            batch = symbols[i:i + self.batch_size]
            results = await asyncio.gather(*(self._backfill_symbol(cli, s) for s in batch))
            for sym, success in zip(batch, results):
                (ok if success else failed).append(sym)
            logger.info("backfilled %d/%d symbols | ok %d | failed %d",
                        i + len(batch), len(symbols), len(ok), len(failed))
            if i + self.batch_size < len(symbols):
                await asyncio.sleep(self.batch_pause_sec)
        return ok, failed

    async def _backfill_symbol(self, cli: AsyncClient, symbol: str) -> bool:
        try:
            candles = await get_historical_candles(cli, symbol, self.timeframe, self.backfill_limit)
        except Exception as e:
            logger.error("backfill failed for %s: %s", symbol, e)
            return False
        if len(candles) < self.strategy.ema_period:
            logger.error("%s: only %d candles for EMA %d, not enough history",
                         symbol, len(candles), self.strategy.ema_period)
            return False
        for c in candles:
            await self.feed(c)
        return True

    # ---- live feed --------------------------------------------------------

    async def feed(self, candle: Candle) -> bool:
        """Process one candle unless its symbol already moved past it."""
        async with self._lock(candle.symbol):
            last = self._last_close.get(candle.symbol)
            if last is not None and candle.close_time <= last:
                logger.debug("%s: skipping stale candle closed at %d", candle.symbol, candle.close_time)
                return False
            self._last_close[candle.symbol] = candle.close_time
            self.strategy.process_candle(candle)
        return True

    def last_close_time(self, symbol: str) -> Optional[int]:
        return self._last_close.get(symbol)

    async def process_incoming(self, candle: Candle) -> bool:
        if not self.is_trading or candle.symbol not in self.active_symbols:
            return False
        return await self.feed(candle)

    def _start_socket(self, symbol: str) -> None:
        self._socket_tasks[symbol] = asyncio.create_task(self._kline_stream_loop(symbol))

    async def _kline_stream_loop(self, symbol: str) -> None:
        while not self._stop_event.is_set():
            try:
                bm = BinanceSocketManager(self._client)
                async with bm.kline_socket(symbol, interval=self.timeframe) as s:
                    while not self._stop_event.is_set():
                        msg = await s.recv()
                        try:
                            candle = parse_kline_event(msg)
                        except (KeyError, ValueError) as e:
                            logger.warning("%s: bad kline event: %s", symbol, e)
                            continue
                        if candle:
                            await self.process_incoming(candle)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("%s: kline stream error: %s", symbol, e)
                await asyncio.sleep(RECONNECT_DELAY_SEC)

    # ---- symbols ----------------------------------------------------------

    async def add_symbol(self, symbol: str) -> bool:
        symbol = symbol.upper()
        if symbol in self.active_symbols:
            logger.warning("%s already tracked", symbol)
            return False

        cli = self._client or await self.client_factory()
        try:
            if await get_current_price(cli, symbol) is None:
                logger.error("%s: no price available, not adding", symbol)
                return False
            if not await self._backfill_symbol(cli, symbol):
                return False
        finally:
            if cli is not self._client:
                await cli.close_connection()

        self.active_symbols.append(symbol)
        if self.is_trading and self._client is not None:
            self._start_socket(symbol)
        logger.info("%s added", symbol)
        return True

    def remove_symbol(self, symbol: str) -> bool:
        symbol = symbol.upper()
        if symbol not in self.active_symbols:
            logger.warning("%s is not tracked", symbol)
            return False
        self.active_symbols.remove(symbol)
        self._locks.pop(symbol, None)
        task = self._socket_tasks.pop(symbol, None)
        if task:
            task.cancel()
            self._retired_tasks.append(task)
        logger.info("%s removed", symbol)
        return True

    def get_trading_status(self) -> Dict:
        return {
            "isTrading": self.is_trading,
            "activeSymbolsCount": len(self.active_symbols),
            "activeSymbols": self.active_symbols[:20],
            "timeframe": self.timeframe,
            "streams": len(self._socket_tasks),
        }
