from typing import Dict, Optional

from .config import AVERAGING_DROP_PCT, EMA_PERIOD, ORDER_SIZE_USDT
from .indicators import EMAEngine
from .ledger import PositionLedger
from .logging_utils import setup_logger
from .types import Candle, EMASignal, PositionGroup, SignalType

logger = setup_logger("strategy")

STRATEGY_NAME = "EMA Hedger v2.0"


def position_summary(p: PositionGroup) -> Dict:
    return {
        "symbol": p.symbol,
        "longOrders": len(p.open_longs()),
        "shortOrders": len(p.open_shorts()),
        "totalLongSize": round(p.total_long_size, 4),
        "totalShortSize": round(p.total_short_size, 4),
        "averagePrice": round(p.average_long_price, 4),
        "isHedged": p.is_hedged,
        "lastIndex": p.last_long_index,
    }


class StrategyEngine:
    """EMA crossing strategy with averaging and hedging.

    Per candle: update the EMA, act on a crossing if one fired, then run the
    hedge/averaging check against the current position. Candles of one symbol
    must arrive in order; different symbols are independent.
    """

    def __init__(
        self,
        ema_engine: Optional[EMAEngine] = None,
        ledger: Optional[PositionLedger] = None,
        ema_period: int = EMA_PERIOD,
        order_size: float = ORDER_SIZE_USDT,
        averaging_drop_pct: float = AVERAGING_DROP_PCT,
    ):
        self.ema = ema_engine or EMAEngine()
        self.ledger = ledger or PositionLedger()
        self.ema_period = ema_period
        self.order_size = order_size
        self.averaging_drop_pct = averaging_drop_pct
        self.errors = 0
        logger.info("%s ready: EMA %d, order size %.2f USDT", STRATEGY_NAME, ema_period, order_size)

    def process_candle(self, candle: Candle) -> None:
        try:
            reading = self.ema.update_ema(candle, self.ema_period)
            if reading is None:
                return

            signal = self.ema.detect_crossing(candle, self.ema_period)
            if signal:
                self.handle_signal(signal)

            self.check_for_averaging(candle.symbol, candle.close, candle.close_time)
        except Exception:
            self.errors += 1
            logger.exception("failed to process candle for %s", candle.symbol)

    def handle_signal(self, signal: EMASignal) -> None:
        symbol, price, ts = signal.symbol, signal.current_price, signal.timestamp
        position = self.ledger.get_position(symbol)
        qty = self.order_size / price

        if signal.type == SignalType.CROSS_UP:
            if position is None or position.total_long_size == 0:
                logger.info("%s: CROSS_UP @ %.4f -> entry long %.4f", symbol, price, qty)
                self.ledger.open_entry_long(symbol, price, qty, ts)
            else:
                logger.info("%s: CROSS_UP @ %.4f -> average long %.4f onto %.4f",
                            symbol, price, qty, position.total_long_size)
                self.ledger.open_average_long(symbol, price, qty, ts)
            closed = self.ledger.close_all_shorts(symbol, price, ts)
            if closed:
                logger.info("%s: closed %d shorts on CROSS_UP", symbol, len(closed))

        elif signal.type == SignalType.CROSS_DOWN:
            if position is None or position.total_long_size == 0:
                logger.info("%s: CROSS_DOWN @ %.4f with no longs, nothing to do", symbol, price)
                return
            logger.info("%s: CROSS_DOWN @ %.4f, longs %.4f avg %.4f -> partial close + hedge",
                        symbol, price, position.total_long_size, position.average_long_price)
            result = self.ledger.close_last_profitable_longs(symbol, price, ts)
            if not result.closed_orders:
                logger.info("%s: no profitable longs to close", symbol)
            if result.remaining_long_size > 0:
                self.ledger.open_hedge_short(symbol, price, result.remaining_long_size, ts)

    def check_for_averaging(self, symbol: str, price: float, ts: Optional[int] = None) -> None:
        position = self.ledger.get_position(symbol)
        if position is None or position.total_long_size == 0:
            return

        above = self.ema.is_above(symbol, price)
        if above is None:
            return

        if not above and self.ledger.has_unhedged_longs(symbol):
            logger.info("%s: price %.4f under EMA with unhedged longs -> hedge %.4f",
                        symbol, price, position.total_long_size)
            self.ledger.open_hedge_short(symbol, price, position.total_long_size, ts)
            return

        if above:
            drop_pct = (position.average_long_price - price) / position.average_long_price * 100
            if drop_pct <= self.averaging_drop_pct:
                return
            qty = self.order_size / price
            logger.info("%s: price %.1f%% below long avg %.4f -> average long %.4f",
                        symbol, drop_pct, position.average_long_price, qty)
            self.ledger.open_average_long(symbol, price, qty, ts)
            if position.is_hedged:
                updated = self.ledger.get_position(symbol)
                new_size = updated.total_long_size if updated else 0.0
                self.ledger.adjust_hedge_size(symbol, price, new_size, ts)

    def get_status(self) -> Dict:
        stats = self.ledger.get_stats()
        return {
            "strategy": STRATEGY_NAME,
            "emaPeriod": self.ema_period,
            "orderSize": self.order_size,
            "stats": stats.to_dict(),
            "emaTracking": self.ema.get_stats()["trackedSymbols"],
            "errors": self.errors,
            "activePositions": [position_summary(p) for p in self.ledger.get_all_positions()],
            "description": {
                "logic": "EMA crossings + averaging + hedging",
                "longEntry": "Price crosses EMA upward",
                "shortEntry": "Price crosses EMA downward (hedge sized to remaining longs)",
                "averaging": f"Price above EMA and more than {self.averaging_drop_pct}% below average long price",
                "partialClose": "Close the most recent longs while their combined pnl stays >= 0",
            },
        }

    def log_stats(self) -> None:
        stats = self.ledger.get_stats()
        logger.info("=== stats ===")
        logger.info("balance: %.2f USDT", stats.balance)
        logger.info("total pnl: %+.2f USDT", stats.total_pnl)
        logger.info("orders: %d (L: %d, S: %d), closed: %d",
                    stats.total_orders, stats.long_orders, stats.short_orders, stats.closed_orders)
        logger.info("win rate: %.1f%%, active positions: %d", stats.win_rate, stats.active_positions)
        for p in self.ledger.get_all_positions():
            logger.info("%s: longs %d (%.4f) shorts %d (%.4f) avg %.4f %s last index %d",
                        p.symbol, len(p.open_longs()), p.total_long_size,
                        len(p.open_shorts()), p.total_short_size, p.average_long_price,
                        "HEDGED" if p.is_hedged else "UNHEDGED", p.last_long_index)
