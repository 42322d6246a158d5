"""
Discrete state and action spaces.

A state is a tuple holding one integer key per axis. Each axis maps its keys
to semantic values (levels, booleans, enum members); partial state
descriptions are matched against the semantic values, while states, the
Q-table and applicability constraints work on keys.

Actions are synthesized from controllable properties: one action per value
of every payload field. An action is offered only in states whose bound axis
reads a value other than the one the action would set.
"""
import itertools
import logging
from dataclasses import dataclass, field

from qlab.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Axis:
    name: str
    values: dict  # key -> semantic value, in declared order
    kind: str = "level"

    @classmethod
    def levels(cls, name, count):
        return cls(name, {i: i for i in range(count)}, "level")

    @classmethod
    def boolean(cls, name):
        return cls(name, {0: False, 1: True}, "boolean")

    @property
    def keys(self):
        return list(self.values)

    def key_of(self, value):
        for key, semantic in self.values.items():
            if semantic == value and isinstance(semantic, bool) == isinstance(value, bool):
                return key
        raise KeyError(f"{value!r} is not a value of axis {self.name}")

    def __len__(self):
        return len(self.values)


class StateSpace:
    """Cartesian product of axis keys, with a stable index per state."""

    def __init__(self, axes):
        self.axes = list(axes)
        if not self.axes:
            raise ConfigurationError("A state space needs at least one axis")
        self.states = list(itertools.product(*(axis.keys for axis in self.axes)))
        self._index = {state: i for i, state in enumerate(self.states)}

    def __len__(self):
        return len(self.states)

    def __iter__(self):
        return iter(self.states)

    @property
    def cardinalities(self):
        return tuple(len(axis) for axis in self.axes)

    def axis_index(self, name):
        for i, axis in enumerate(self.axes):
            if axis.name == name:
                return i
        raise KeyError(name)

    def index_of(self, state):
        return self._index[tuple(state)]

    def state(self, index):
        return self.states[index]

    def decode(self, index):
        """Semantic values of the state at `index`."""
        return tuple(axis.values[key] for axis, key in zip(self.axes, self.states[index]))

    def compatible_states(self, description):
        """
        Indices of every state whose decoded values start with `description`.

        e.g. with level axes first, [3, 3] selects all states [3, 3, _, ..., _].
        """
        description = list(description)
        if len(description) > len(self.axes):
            return []
        width = len(description)
        return [
            i for i in range(len(self.states))
            if list(self.decode(i)[:width]) == description
        ]


@dataclass(frozen=True)
class ControllableProperty:
    """A writable property of the environment, bound to the axis it drives."""
    tag: str
    axis: str
    kind: str = "other"
    fields: dict = field(default_factory=lambda: {"status": [False, True]})
    handle: object = None


@dataclass
class Action:
    tag: str
    payload_tags: tuple
    payload: tuple
    handle: object = None
    kind: str = "other"
    axis: int = -1
    required_values: frozenset = frozenset()

    def set_applicable_on(self, axis, values):
        self.axis = axis
        self.required_values = frozenset(values)

    def is_applicable(self, state):
        return state[self.axis] in self.required_values

    def __str__(self):
        return (f"Action Tag: {self.tag}, Payload Tags: {list(self.payload_tags)}, "
                f"Payload: {list(self.payload)}")


class ActionSpace:
    """Indexed actions synthesized from controllable properties."""

    def __init__(self, state_space, properties):
        self.state_space = state_space
        self.actions = []
        for prop in properties:
            self._add_property(prop)
        if not self.actions:
            raise ConfigurationError("No controllable property produced an action")

        # applicable[s] lists action indices offered in state s
        self._applicable = [
            [i for i, action in enumerate(self.actions) if action.is_applicable(state)]
            for state in state_space
        ]

    def _add_property(self, prop):
        try:
            axis_index = self.state_space.axis_index(prop.axis)
        except KeyError:
            logger.warning("Property %s: axis %s not found, no actions created",
                           prop.tag, prop.axis)
            return
        axis = self.state_space.axes[axis_index]

        for name, values in prop.fields.items():
            for value in values:
                try:
                    target = axis.key_of(value)
                except KeyError:
                    logger.warning("Property %s: value %r not on axis %s, skipped",
                                   prop.tag, value, axis.name)
                    continue
                action = Action(prop.tag, (name,), (value,), prop.handle, prop.kind)
                action.set_applicable_on(axis_index, [k for k in axis.keys if k != target])
                self.actions.append(action)

    def __len__(self):
        return len(self.actions)

    def __getitem__(self, index):
        return self.actions[index]

    def __iter__(self):
        return iter(self.actions)

    def applicable(self, state_index):
        return self._applicable[state_index]
