"""
core/engine/state_machine.py

状态转换表 - 声明式的状态守卫

只描述"从哪个状态可以到哪个状态"，不持有当前状态；
调用方把持久化的旧状态和请求的新状态一起传入，守卫逻辑保持为纯函数。
"""
from typing import FrozenSet, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum


def _state(value) -> str:
    """枚举取 value，其余转字符串"""
    return value.value if isinstance(value, Enum) else str(value)


@dataclass(frozen=True)
class TransitionTable:
    """
    状态转换表

    Attributes:
        name: 实体名称（用于日志和错误信息）
        states: 所有状态
        transitions: 源状态 -> 允许的目标状态集合
        initial_state: 初始状态
        final_states: 终态（不允许任何后续转换）

    Example:
        >>> table = TransitionTable.from_edges(
        ...     "Order",
        ...     initial_state="pending",
        ...     edges={"pending": ["processing"], "processing": []},
        ... )
        >>> table.is_valid_transition("pending", "processing")
        True
    """

    name: str
    states: FrozenSet[str]
    transitions: Mapping[str, FrozenSet[str]]
    initial_state: str
    final_states: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_edges(cls, name: str, initial_state: str,
                   edges: Mapping[str, Iterable[str]]) -> "TransitionTable":
        """从邻接表构建；没有出边的状态自动视为终态"""
        transitions = {_state(src): frozenset(_state(t) for t in targets) for src, targets in edges.items()}
        states = frozenset(transitions) | frozenset().union(*transitions.values())
        final_states = frozenset(s for s in states if not transitions.get(s))
        return cls(
            name=name,
            states=states,
            transitions=transitions,
            initial_state=_state(initial_state),
            final_states=final_states,
        )

    @classmethod
    def permissive(cls, name: str, initial_state: str, states: Iterable[str]) -> "TransitionTable":
        """任意状态之间都可以转换（不做转换限制的实体）"""
        all_states = frozenset(_state(s) for s in states)
        return cls(
            name=name,
            states=all_states,
            transitions={s: all_states for s in all_states},
            initial_state=_state(initial_state),
        )

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        """检查 from_state -> to_state 是否被允许"""
        return _state(to_state) in self.transitions.get(_state(from_state), frozenset())

    def allowed_targets(self, from_state: str) -> FrozenSet[str]:
        """返回某状态允许的目标状态"""
        return self.transitions.get(_state(from_state), frozenset())

    def is_final(self, state: str) -> bool:
        return _state(state) in self.final_states


# 导出
__all__ = [
    "TransitionTable",
]
