import logging

import numpy as np
import pytest

from qlab.errors import ConfigurationError
from qlab.spaces import ActionSpace, Axis, ControllableProperty, StateSpace


def two_axis_space():
    return StateSpace([Axis.levels("a", 2), Axis.levels("b", 3)])


def test_state_space_size_is_product_of_axis_sizes():
    space = StateSpace([Axis.levels("a", 4), Axis.boolean("b"), Axis.levels("c", 3)])
    assert len(space) == 4 * 2 * 3
    assert space.cardinalities == (4, 2, 3)


def test_index_of_is_a_bijection():
    space = StateSpace([Axis.levels("a", 3), Axis.boolean("b"), Axis.levels("c", 2)])
    indices = [space.index_of(state) for state in space]
    assert indices == list(range(len(space)))
    assert len(set(space.states)) == len(space)


def test_enumeration_is_stable_with_last_axis_fastest():
    first = two_axis_space()
    second = two_axis_space()
    assert first.states == second.states
    assert first.states[:4] == [(0, 0), (0, 1), (0, 2), (1, 0)]


def test_index_of_unknown_state_raises():
    with pytest.raises(KeyError):
        two_axis_space().index_of((5, 0))


def test_decode_uses_semantic_values():
    space = StateSpace([Axis.levels("level", 2), Axis.boolean("light")])
    assert space.decode(space.index_of((1, 1))) == (1, True)


def test_compatible_states_empty_description_matches_everything():
    space = two_axis_space()
    assert space.compatible_states([]) == list(range(len(space)))


def test_compatible_states_full_description_matches_one_state():
    space = two_axis_space()
    assert space.compatible_states([1, 2]) == [space.index_of((1, 2))]


def test_compatible_states_prefix():
    space = StateSpace([Axis.levels("z1", 4), Axis.levels("z2", 4), Axis.boolean("light")])
    matches = space.compatible_states([3, 3])
    assert matches == [space.index_of((3, 3, 0)), space.index_of((3, 3, 1))]


def test_compatible_states_matches_booleans():
    space = StateSpace([Axis.levels("z1", 2), Axis.boolean("light")])
    assert space.compatible_states([1, True]) == [space.index_of((1, 1))]


def test_compatible_states_without_match():
    space = two_axis_space()
    assert space.compatible_states([1, 7]) == []
    assert space.compatible_states([0, 0, 0]) == []


def test_axis_key_of_distinguishes_booleans_from_ints():
    axis = Axis.boolean("light")
    assert axis.key_of(True) == 1
    with pytest.raises(KeyError):
        axis.key_of(1)


def test_axis_key_of_accepts_equal_numbers():
    axis = Axis.levels("level", 4)
    assert axis.key_of(2.0) == 2
    assert axis.key_of(np.int64(2)) == 2
    with pytest.raises(KeyError):
        axis.key_of(True)


def test_action_space_on_mixed_cardinality_axes():
    space = two_axis_space()
    actions = ActionSpace(space, [
        ControllableProperty("set_a", "a", fields={"value": [0, 1]}),
        ControllableProperty("set_b", "b", fields={"value": [0, 1, 2]}),
    ])
    assert len(actions) == 5
    assert [(a.tag, a.payload) for a in actions] == [
        ("set_a", (0,)), ("set_a", (1,)),
        ("set_b", (0,)), ("set_b", (1,)), ("set_b", (2,)),
    ]

    for s, state in enumerate(space):
        applicable = [actions[i] for i in actions.applicable(s)]
        on_a = [a for a in applicable if a.axis == 0]
        on_b = [a for a in applicable if a.axis == 1]
        assert len(on_a) == 1
        assert len(on_b) == 2
        # every offered action changes its axis
        assert all(a.payload[0] != state[a.axis] for a in applicable)


def test_each_action_applies_to_a_strict_subset_of_states():
    space = StateSpace([Axis.levels("a", 2), Axis.levels("b", 3), Axis.boolean("c")])
    actions = ActionSpace(space, [
        ControllableProperty("set_b", "b", fields={"value": [0, 1, 2]}),
        ControllableProperty("set_c", "c", fields={"status": [False, True]}),
    ])
    for action in actions:
        selected = sum(action.is_applicable(state) for state in space)
        assert 0 < selected < len(space)


def test_boolean_actions_bind_to_the_opposite_value():
    space = StateSpace([Axis.boolean("light")])
    actions = ActionSpace(space, [ControllableProperty("set_light", "light", kind="light")])
    turn_off, turn_on = actions
    assert turn_on.payload == (True,)
    assert turn_on.required_values == frozenset({0})
    assert turn_off.required_values == frozenset({1})
    assert turn_on.kind == "light"


def test_property_without_axis_contributes_no_actions(caplog):
    space = two_axis_space()
    with caplog.at_level(logging.WARNING):
        actions = ActionSpace(space, [
            ControllableProperty("missing", "nope", fields={"value": [0, 1]}),
            ControllableProperty("set_a", "a", fields={"value": [0, 1]}),
        ])
    assert [a.tag for a in actions] == ["set_a", "set_a"]
    assert "missing" in caplog.text


def test_action_space_without_actions_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        ActionSpace(two_axis_space(), [ControllableProperty("missing", "nope")])


def test_indices_are_contiguous():
    space = two_axis_space()
    actions = ActionSpace(space, [
        ControllableProperty("set_a", "a", fields={"value": [0, 1]}),
        ControllableProperty("set_b", "b", fields={"value": [0, 1, 2]}),
    ])
    offered = sorted({i for s in range(len(space)) for i in actions.applicable(s)})
    assert offered == list(range(len(actions)))
