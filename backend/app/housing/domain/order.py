"""
订单状态守卫 - 纯函数

状态机: pending -> processing -> ready -> delivered，途中任意在途状态可取消。
库存在 pending -> processing 时扣减，在途状态取消时归还；
送达只记录送达时间，不再动库存。
"""
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from core.engine.state_machine import TransitionTable
from app.models.ontology import OrderStatus, OrderPaymentStatus
from app.housing.errors import InvalidTransition

ORDER_TRANSITIONS = TransitionTable.from_edges(
    "GroceryOrder",
    initial_state=OrderStatus.PENDING,
    edges={
        OrderStatus.PENDING: [OrderStatus.PROCESSING, OrderStatus.CANCELLED],
        OrderStatus.PROCESSING: [OrderStatus.READY, OrderStatus.CANCELLED],
        OrderStatus.READY: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
        OrderStatus.DELIVERED: [],
        OrderStatus.CANCELLED: [],
    },
)

PAYMENT_TRANSITIONS = TransitionTable.from_edges(
    "GroceryOrderPayment",
    initial_state=OrderPaymentStatus.PENDING,
    edges={
        OrderPaymentStatus.PENDING: [OrderPaymentStatus.PAID],
        OrderPaymentStatus.PAID: [],
    },
)

# 已预留库存的在途状态
IN_FLIGHT_STATES = frozenset({OrderStatus.PROCESSING, OrderStatus.READY})

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class StockMove:
    """单个商品的库存变动（负数为扣减）"""
    item_id: int
    delta: int


@dataclass(frozen=True)
class TransitionPlan:
    """一次状态转换需要落库的全部副作用"""
    from_status: OrderStatus
    to_status: OrderStatus
    stock_moves: Tuple[StockMove, ...] = ()
    set_delivery_time: bool = False

    @property
    def reserves_stock(self) -> bool:
        return any(m.delta < 0 for m in self.stock_moves)

    @property
    def restores_stock(self) -> bool:
        return any(m.delta > 0 for m in self.stock_moves)


def compute_total(lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
    """订单总价 = Σ 单价 × 数量，保留两位小数"""
    total = sum((Decimal(price) * quantity for price, quantity in lines), Decimal("0"))
    return total.quantize(_CENT, rounding=ROUND_HALF_UP)


def _aggregate(lines, sign: int) -> Tuple[StockMove, ...]:
    # 同一商品合并为一次变动，按 item_id 排序保证加锁顺序一致
    totals = OrderedDict()
    for line in sorted(lines, key=lambda l: l.item_id):
        totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity
    return tuple(StockMove(item_id=item_id, delta=sign * qty) for item_id, qty in totals.items())


def apply_transition(order, from_status: OrderStatus, to_status: OrderStatus) -> TransitionPlan:
    """
    计算订单从 from_status 到 to_status 的转换计划

    from_status 由调用方显式传入（持久化的旧状态），不依赖对象快照比较。

    Args:
        order: 订单，需提供 lines（每行含 item_id、quantity）
        from_status: 转换前的持久化状态
        to_status: 请求的目标状态

    Returns:
        TransitionPlan

    Raises:
        InvalidTransition: 不在允许的转换集合中
    """
    from_status = OrderStatus(from_status)
    to_status = OrderStatus(to_status)

    if not ORDER_TRANSITIONS.is_valid_transition(from_status, to_status):
        raise InvalidTransition("order", from_status.value, to_status.value)

    if from_status == OrderStatus.PENDING and to_status == OrderStatus.PROCESSING:
        return TransitionPlan(from_status, to_status, stock_moves=_aggregate(order.lines, -1))

    if to_status == OrderStatus.CANCELLED and from_status in IN_FLIGHT_STATES:
        return TransitionPlan(from_status, to_status, stock_moves=_aggregate(order.lines, 1))

    if to_status == OrderStatus.DELIVERED:
        return TransitionPlan(from_status, to_status, set_delivery_time=True)

    return TransitionPlan(from_status, to_status)


def check_payment_transition(from_status: OrderPaymentStatus, to_status: OrderPaymentStatus) -> None:
    """支付状态只能 pending -> paid"""
    if not PAYMENT_TRANSITIONS.is_valid_transition(from_status, to_status):
        raise InvalidTransition(
            "order payment",
            OrderPaymentStatus(from_status).value,
            OrderPaymentStatus(to_status).value,
        )
