from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Side(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class OrderType(str, Enum):
    ENTRY = "ENTRY"
    AVERAGE = "AVERAGE"
    HEDGE = "HEDGE"


class OrderStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class SignalType(str, Enum):
    CROSS_UP = "CROSS_UP"
    CROSS_DOWN = "CROSS_DOWN"


@dataclass(frozen=True)
class Candle:
    """One closed kline. Prices are already parsed to float."""

    symbol: str
    open_time: int
    close_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class EMAReading:
    symbol: str
    period: int
    value: float
    timestamp: int


@dataclass(frozen=True)
class EMASignal:
    symbol: str
    type: SignalType
    current_price: float
    ema_value: float
    timestamp: int


@dataclass
class Order:
    """Paper order record.

    An order is created OPEN and flips to CLOSED at most once; the close
    fields stay None until then. Only long orders carry ``order_index``.
    """

    id: str
    symbol: str
    side: Side
    type: OrderType
    quantity: float
    price: float
    timestamp: int
    status: OrderStatus = OrderStatus.OPEN
    order_index: Optional[int] = None

    close_price: Optional[float] = None
    close_time: Optional[int] = None
    pnl: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.OPEN

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "type": self.type.value,
            "quantity": self.quantity,
            "price": self.price,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "orderIndex": self.order_index,
            "closePrice": self.close_price,
            "closeTime": self.close_time,
            "pnl": self.pnl,
        }


@dataclass
class PositionGroup:
    symbol: str
    long_orders: List[Order] = field(default_factory=list)
    short_orders: List[Order] = field(default_factory=list)

    # derived, recomputed by the ledger after every mutation
    total_long_size: float = 0.0
    total_short_size: float = 0.0
    average_long_price: float = 0.0
    is_hedged: bool = False
    last_long_index: int = 0

    def open_longs(self) -> List[Order]:
        return [o for o in self.long_orders if o.is_open]

    def open_shorts(self) -> List[Order]:
        return [o for o in self.short_orders if o.is_open]


@dataclass
class PartialCloseResult:
    closed_orders: List[Order]
    total_closed_quantity: float
    total_pnl: float
    remaining_long_size: float


@dataclass(frozen=True)
class StrategyStats:
    total_orders: int
    long_orders: int
    short_orders: int
    closed_orders: int
    total_pnl: float
    win_rate: float
    active_positions: int
    balance: float

    def to_dict(self) -> Dict:
        return {
            "totalOrders": self.total_orders,
            "longOrders": self.long_orders,
            "shortOrders": self.short_orders,
            "closedOrders": self.closed_orders,
            "totalPnl": self.total_pnl,
            "winRate": self.win_rate,
            "activePositions": self.active_positions,
            "balance": self.balance,
        }
