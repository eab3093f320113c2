"""
测试 core.engine.state_machine 状态转换表
"""
from enum import Enum

from core.engine.state_machine import TransitionTable


class Light(str, Enum):
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    OFF = "off"


def _table():
    return TransitionTable.from_edges(
        "Light",
        initial_state=Light.RED,
        edges={
            Light.RED: [Light.GREEN, Light.OFF],
            Light.GREEN: [Light.YELLOW, Light.OFF],
            Light.YELLOW: [Light.RED, Light.OFF],
        },
    )


def test_from_edges():
    table = _table()

    assert table.initial_state == "red"
    assert table.states == {"red", "green", "yellow", "off"}
    assert table.final_states == {"off"}


def test_valid_transitions_accept_enum_or_string():
    table = _table()

    assert table.is_valid_transition(Light.RED, Light.GREEN)
    assert table.is_valid_transition("green", "yellow")
    assert not table.is_valid_transition(Light.RED, Light.YELLOW)
    assert not table.is_valid_transition(Light.OFF, Light.RED)
    assert not table.is_valid_transition("blue", "red")


def test_allowed_targets():
    table = _table()

    assert table.allowed_targets(Light.YELLOW) == {"red", "off"}
    assert table.allowed_targets(Light.OFF) == frozenset()
    assert table.is_final(Light.OFF)
    assert not table.is_final(Light.RED)


def test_permissive():
    table = TransitionTable.permissive("Light", initial_state=Light.RED, states=list(Light))

    assert table.is_valid_transition(Light.OFF, Light.RED)
    assert table.is_valid_transition(Light.GREEN, Light.GREEN)
    assert table.final_states == frozenset()
