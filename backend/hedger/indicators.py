from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional

from .logging_utils import setup_logger
from .types import Candle, EMAReading, EMASignal, SignalType

logger = setup_logger("ema")


def ema_step(price: float, previous: float, period: int) -> float:
    k = 2 / (period + 1)
    return price * k + previous * (1 - k)


@dataclass
class EMAState:
    period: int
    prices: Deque[float] = field(default_factory=deque)
    value: Optional[float] = None
    previous: Optional[float] = None

    def __post_init__(self):
        # only the first `period` closes matter (SMA seed); keep 2x as slack
        self.prices = deque(self.prices, maxlen=self.period * 2)


class EMAEngine:
    """Incremental EMA per symbol plus price/EMA crossing detection."""

    def __init__(self):
        self._states: Dict[str, EMAState] = {}

    def _state(self, symbol: str, period: int) -> EMAState:
        st = self._states.get(symbol)
        if st is None or st.period != period:
            # a different period means a different indicator: start over
            st = EMAState(period=period)
            self._states[symbol] = st
        return st

    def update_ema(self, candle: Candle, period: int) -> Optional[EMAReading]:
        if period <= 0:
            raise ValueError("EMA period must be > 0")
        st = self._state(candle.symbol, period)
        st.prices.append(candle.close)

        if len(st.prices) < period:
            return None
        if len(st.prices) == period and st.value is None:
            value = sum(st.prices) / period
        else:
            value = ema_step(candle.close, st.value, period)

        if st.value is not None:
            st.previous = st.value
        st.value = value
        logger.debug("%s: close=%.4f ema=%.4f", candle.symbol, candle.close, value)
        return EMAReading(symbol=candle.symbol, period=period, value=value, timestamp=candle.close_time)

    def detect_crossing(self, candle: Candle, period: int) -> Optional[EMASignal]:
        st = self._states.get(candle.symbol)
        if st is None or st.period != period or st.value is None or st.previous is None:
            return None

        # the candle's open stands in for the previous price
        prev_price = candle.open
        price = candle.close

        if prev_price <= st.previous and price > st.value:
            logger.info("%s: price crossed EMA upward, price=%.4f ema=%.4f", candle.symbol, price, st.value)
            return EMASignal(candle.symbol, SignalType.CROSS_UP, price, st.value, candle.close_time)
        if prev_price >= st.previous and price < st.value:
            logger.info("%s: price crossed EMA downward, price=%.4f ema=%.4f", candle.symbol, price, st.value)
            return EMASignal(candle.symbol, SignalType.CROSS_DOWN, price, st.value, candle.close_time)
        return None

    def current_ema(self, symbol: str) -> Optional[float]:
        st = self._states.get(symbol)
        return st.value if st else None

    def previous_ema(self, symbol: str) -> Optional[float]:
        st = self._states.get(symbol)
        return st.previous if st else None

    def is_above(self, symbol: str, price: float) -> Optional[bool]:
        ema = self.current_ema(symbol)
        if ema is None:
            return None
        return price > ema

    def clear_symbol(self, symbol: str) -> None:
        self._states.pop(symbol, None)

    def get_stats(self) -> Dict:
        values = {s: st.value for s, st in self._states.items() if st.value is not None}
        return {"trackedSymbols": len(values), "emaValues": values}
