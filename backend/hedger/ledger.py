import copy
import threading
import time
from typing import Any, Dict, List, Optional

from .config import STARTING_BALANCE
from .logging_utils import setup_logger
from .types import (
    Order,
    OrderStatus,
    OrderType,
    PartialCloseResult,
    PositionGroup,
    Side,
    StrategyStats,
)

logger = setup_logger("ledger")

# audit trail of ledger actions (opens + closes); orders themselves live in `history`
EVENT_LOG_MAX = 500


def _now_ms() -> int:
    return int(time.time() * 1000)


class PositionLedger:
    """Paper ledger of per-symbol position groups.

    Every mutating call recomputes the touched group's aggregates before it
    returns, and drops the group once it holds no open order on either side.
    The virtual balance only moves by realized pnl.
    """

    def __init__(self, starting_balance: float = STARTING_BALANCE):
        self._lock = threading.RLock()
        self._positions: Dict[str, PositionGroup] = {}
        self._history: List[Order] = []
        self._long_counter = 0
        self._short_counter = 0
        self._balance = float(starting_balance)
        self.events: List[Dict[str, Any]] = []

    # ---- opening ----------------------------------------------------------

    def open_entry_long(self, symbol: str, price: float, qty: float, ts: Optional[int] = None) -> Order:
        return self._open_long(symbol, price, qty, OrderType.ENTRY, ts)

    def open_average_long(self, symbol: str, price: float, qty: float, ts: Optional[int] = None) -> Order:
        return self._open_long(symbol, price, qty, OrderType.AVERAGE, ts)

    def open_hedge_short(self, symbol: str, price: float, qty: float, ts: Optional[int] = None) -> Order:
        with self._lock:
            self._short_counter += 1
            order = Order(
                id=f"S{self._short_counter}",
                symbol=symbol,
                side=Side.SHORT,
                type=OrderType.HEDGE,
                quantity=qty,
                price=price,
                timestamp=ts if ts is not None else _now_ms(),
            )
            group = self._ensure_group(symbol)
            group.short_orders.append(order)
            self._history.append(order)
            self._recompute(group)
            self._log_event("open", order)
        logger.info("HEDGE SHORT opened %s %s qty=%.4f @ %.4f (notional %.2f)",
                    order.id, symbol, qty, price, price * qty)
        return order

    def _open_long(self, symbol: str, price: float, qty: float, otype: OrderType, ts: Optional[int]) -> Order:
        with self._lock:
            group = self._ensure_group(symbol)
            self._long_counter += 1
            order = Order(
                id=f"L{self._long_counter}",
                symbol=symbol,
                side=Side.LONG,
                type=otype,
                quantity=qty,
                price=price,
                timestamp=ts if ts is not None else _now_ms(),
                order_index=group.last_long_index + 1,
            )
            group.long_orders.append(order)
            group.last_long_index = order.order_index
            self._history.append(order)
            self._recompute(group)
            self._log_event("open", order)
        logger.info("%s LONG opened %s %s qty=%.4f @ %.4f (notional %.2f)",
                    otype.value, order.id, symbol, qty, price, price * qty)
        return order

    # ---- closing ----------------------------------------------------------

    def close_all_shorts(self, symbol: str, exit_price: float, ts: Optional[int] = None) -> List[Order]:
        with self._lock:
            group = self._positions.get(symbol)
            if group is None:
                return []
            closed = []
            for order in group.open_shorts():
                # short gains when price falls
                pnl = (order.price - exit_price) * order.quantity
                self._close(order, exit_price, pnl, ts)
                self._balance += pnl
                closed.append(order)
                logger.info("SHORT closed %s %s %.4f -> %.4f qty=%.4f pnl=%+.2f",
                            order.id, symbol, order.price, exit_price, order.quantity, pnl)
            self._recompute(group)
        return closed

    def close_last_profitable_longs(self, symbol: str, exit_price: float,
                                    ts: Optional[int] = None) -> PartialCloseResult:
        """Close the most recent longs while the closed batch stays at pnl >= 0.

        Open longs are walked newest first (by ``order_index``). Each one is
        closed if adding its pnl keeps the running total non-negative; the
        first order that would push the total below zero stops the walk, so
        it and every older long stay open. The closed set is therefore always
        a newest-first suffix of the open longs.
        """
        with self._lock:
            group = self._positions.get(symbol)
            if group is None:
                return PartialCloseResult([], 0.0, 0.0, 0.0)

            open_longs = sorted(group.open_longs(), key=lambda o: o.order_index or 0, reverse=True)
            closed: List[Order] = []
            running_pnl = 0.0
            closed_qty = 0.0
            for order in open_longs:
                order_pnl = (exit_price - order.price) * order.quantity
                if running_pnl + order_pnl < 0:
                    break
                self._close(order, exit_price, order_pnl, ts)
                closed.append(order)
                running_pnl += order_pnl
                closed_qty += order.quantity
                logger.info("LONG closed %s %s %.4f -> %.4f qty=%.4f pnl=%+.2f",
                            order.id, symbol, order.price, exit_price, order.quantity, order_pnl)

            self._balance += running_pnl
            self._recompute(group)
            remaining = group.total_long_size

        logger.info("%s: closed %d longs, pnl=%+.2f, remaining long size=%.4f",
                    symbol, len(closed), running_pnl, remaining)
        return PartialCloseResult(
            closed_orders=closed,
            total_closed_quantity=closed_qty,
            total_pnl=running_pnl,
            remaining_long_size=remaining,
        )

    def adjust_hedge_size(self, symbol: str, price: float, new_long_size: float,
                          ts: Optional[int] = None) -> Optional[Order]:
        with self._lock:
            if symbol not in self._positions:
                return None
            self.close_all_shorts(symbol, price, ts)
            if new_long_size > 0:
                return self.open_hedge_short(symbol, price, new_long_size, ts)
        return None

    def _close(self, order: Order, exit_price: float, pnl: float, ts: Optional[int]) -> None:
        order.status = OrderStatus.CLOSED
        order.close_price = exit_price
        order.close_time = ts if ts is not None else _now_ms()
        order.pnl = pnl
        self._log_event("close", order)

    # ---- bookkeeping ------------------------------------------------------

    def _ensure_group(self, symbol: str) -> PositionGroup:
        group = self._positions.get(symbol)
        if group is None:
            group = PositionGroup(symbol=symbol)
            self._positions[symbol] = group
        return group

    def _recompute(self, group: PositionGroup) -> None:
        open_longs = group.open_longs()
        group.total_long_size = sum(o.quantity for o in open_longs)
        group.total_short_size = sum(o.quantity for o in group.open_shorts())
        if group.total_long_size > 0:
            group.average_long_price = sum(o.price * o.quantity for o in open_longs) / group.total_long_size
        else:
            group.average_long_price = 0.0
        group.is_hedged = group.total_short_size > 0

        if group.total_long_size == 0 and group.total_short_size == 0:
            self._positions.pop(group.symbol, None)

    def _log_event(self, action: str, order: Order) -> None:
        entry = order.to_dict()
        entry["action"] = action
        self.events.append(entry)
        if len(self.events) > EVENT_LOG_MAX:
            del self.events[: len(self.events) - EVENT_LOG_MAX]

    # ---- queries ----------------------------------------------------------

    def has_unhedged_longs(self, symbol: str) -> bool:
        with self._lock:
            group = self._positions.get(symbol)
            return bool(group and group.total_long_size > 0 and not group.is_hedged)

    def get_position(self, symbol: str) -> Optional[PositionGroup]:
        with self._lock:
            group = self._positions.get(symbol)
            return copy.deepcopy(group) if group else None

    def get_all_positions(self) -> List[PositionGroup]:
        with self._lock:
            return [copy.deepcopy(g) for g in self._positions.values()]

    @property
    def history(self) -> List[Order]:
        return list(self._history)

    @property
    def balance(self) -> float:
        return self._balance

    def get_stats(self) -> StrategyStats:
        with self._lock:
            closed = [o for o in self._history if o.status == OrderStatus.CLOSED]
            wins = sum(1 for o in closed if (o.pnl or 0.0) > 0)
            return StrategyStats(
                total_orders=len(self._history),
                long_orders=sum(1 for o in self._history if o.side == Side.LONG),
                short_orders=sum(1 for o in self._history if o.side == Side.SHORT),
                closed_orders=len(closed),
                total_pnl=sum(o.pnl or 0.0 for o in closed),
                win_rate=(wins / len(closed) * 100.0) if closed else 0.0,
                active_positions=len(self._positions),
                balance=self._balance,
            )

    def clear_position(self, symbol: str) -> None:
        with self._lock:
            self._positions.pop(symbol, None)
