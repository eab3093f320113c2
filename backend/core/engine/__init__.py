"""
core/engine - 核心引擎模块

- state_machine: 状态转换表（状态守卫）

使用方式:
    >>> from core.engine import TransitionTable
"""

from core.engine.state_machine import TransitionTable

__all__ = ["TransitionTable"]
