# environment.py
import copy
import json
import logging
import os

import gymnasium as gym
import numpy as np
from gymnasium import spaces

from qlab.errors import ConfigurationError
from qlab.spaces import ActionSpace, Axis, ControllableProperty, StateSpace

logger = logging.getLogger(__name__)

WAS = "http://example.org/was#"

# The lab of the Interactions group: light level and actuator status of two
# zones plus the sunshine outside. Thresholds are lux breakpoints between levels.
DEFAULT_LAB = {
    "axes": [
        {"name": "z1_level", "kind": "level", "values": [0, 1, 2, 3],
         "source": WAS + "Z1Level", "thresholds": [50, 100, 300]},
        {"name": "z2_level", "kind": "level", "values": [0, 1, 2, 3],
         "source": WAS + "Z2Level", "thresholds": [50, 100, 300]},
        {"name": "z1_light", "kind": "boolean", "source": WAS + "Z1Light"},
        {"name": "z2_light", "kind": "boolean", "source": WAS + "Z2Light"},
        {"name": "z1_blinds", "kind": "boolean", "source": WAS + "Z1Blinds"},
        {"name": "z2_blinds", "kind": "boolean", "source": WAS + "Z2Blinds"},
        {"name": "sunshine", "kind": "level", "values": [0, 1, 2, 3],
         "source": WAS + "Sunshine", "thresholds": [50, 200, 700]},
    ],
    "properties": [
        {"tag": WAS + "SetZ1Light", "axis": "z1_light", "kind": "light",
         "fields": {WAS + "Status": [False, True]}},
        {"tag": WAS + "SetZ2Light", "axis": "z2_light", "kind": "light",
         "fields": {WAS + "Status": [False, True]}},
        {"tag": WAS + "SetZ1Blinds", "axis": "z1_blinds", "kind": "blinds",
         "fields": {WAS + "Status": [False, True]}},
        {"tag": WAS + "SetZ2Blinds", "axis": "z2_blinds", "kind": "blinds",
         "fields": {WAS + "Status": [False, True]}},
    ],
}


def load_descriptor(path=None):
    """Load a lab descriptor from a JSON file, or fall back to the built-in lab"""
    if path and os.path.exists(path):
        with open(path, 'r') as f:
            return json.load(f)
    if path:
        logger.warning("Descriptor %s not found, using the default lab", path)
    return copy.deepcopy(DEFAULT_LAB)


def discretize(value, thresholds):
    """
    Map a raw reading to a level given ascending breakpoints, e.g. with
    [50, 100, 300]: <50 -> 0, [50,100) -> 1, [100,300) -> 2, >=300 -> 3
    """
    return int(np.searchsorted(thresholds, value, side="right"))


def build_axis(entry):
    kind = entry.get("kind", "level")
    if kind == "boolean":
        return Axis.boolean(entry["name"])
    if "values" not in entry:
        raise ConfigurationError(f"Axis {entry['name']} declares no values")
    return Axis(entry["name"], dict(enumerate(entry["values"])), kind)


def build_property(entry):
    return ControllableProperty(
        tag=entry["tag"],
        axis=entry["axis"],
        kind=entry.get("kind", "other"),
        fields={name: list(values) for name, values in entry["fields"].items()},
        handle=entry.get("handle", entry["tag"]),
    )


class LearningEnvironment(gym.Env):
    """
    A discrete environment usable for Q learning.

    Subclasses provide `read_state` (a snapshot as a tuple of axis keys) and
    `perform_action`. Rewards and termination depend on the goal being
    learned, so they are left to the learner; `step` reports neither.
    """

    def __init__(self, state_space, action_space):
        super().__init__()
        self.state_space = state_space
        self.actions = action_space
        self.observation_space = spaces.Discrete(len(state_space))
        self.action_space = spaces.Discrete(len(action_space))
        self.last_state = None

    @property
    def state_count(self):
        return len(self.state_space)

    @property
    def action_count(self):
        return len(self.actions)

    def get_action(self, action):
        return self.actions[action]

    def compatible_states(self, description):
        return self.state_space.compatible_states(description)

    def applicable_actions(self, state):
        return self.actions.applicable(state)

    def validate(self):
        """Every state must offer at least one action"""
        for s in range(self.state_count):
            if not self.applicable_actions(s):
                raise ConfigurationError(
                    f"State {s} {list(self.state_space.decode(s))} has no applicable actions"
                )

    def read_state(self):
        """Subclass hook: the current snapshot as a tuple of axis keys"""
        raise NotImplementedError

    def perform_action(self, action):
        """Subclass hook: execute the action with the given index"""
        raise NotImplementedError

    def begin_episode(self):
        """Called by reset before the start state is read"""

    def read_current_state_index(self):
        state = tuple(self.read_state())
        try:
            index = self.state_space.index_of(state)
        except KeyError:
            raise ConfigurationError(
                f"Observed state {list(state)} is not part of the state space"
            ) from None
        self.last_state = state
        return index

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)
        self.begin_episode()
        state = self.read_current_state_index()
        return state, {"state": self.last_state}

    def step(self, action):
        self.perform_action(action)
        state = self.read_current_state_index()
        return state, 0.0, False, False, {"state": self.last_state}


class Lab(LearningEnvironment):
    """
    A lab with zones whose light level depends on lamps, blinds and sunshine.

    The lab is described by a descriptor (see DEFAULT_LAB) and reached through
    a client offering `read_status()` -> {source: raw value} and
    `execute(action)`.
    """

    def __init__(self, client, descriptor=None, reset_world=False):
        descriptor = descriptor if descriptor is not None else load_descriptor()
        try:
            axes = [build_axis(entry) for entry in descriptor["axes"]]
            properties = [build_property(entry) for entry in descriptor["properties"]]
            self.sources = [
                (entry["source"], entry.get("thresholds")) for entry in descriptor["axes"]
            ]
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed lab descriptor: {e!r}") from e

        state_space = StateSpace(axes)
        logger.info("The lab has a state space of n=%d", len(state_space))

        action_space = ActionSpace(state_space, properties)
        logger.info("The lab has an action space of m=%d", len(action_space))
        for action in action_space:
            logger.debug("%s", action)

        super().__init__(state_space, action_space)
        self.client = client
        self.reset_world = reset_world
        self.validate()

        self.read_current_state_index()
        logger.info("The lab current state: %s", list(self.last_state))

    def _read_axis(self, axis, source, thresholds, status):
        if source not in status:
            raise ConfigurationError(f"Status has no reading for axis {axis.name} ({source})")
        raw = status[source]
        if axis.kind == "boolean":
            return 1 if raw else 0
        if thresholds is not None:
            return discretize(raw, thresholds)
        try:
            return axis.key_of(raw)
        except KeyError as e:
            raise ConfigurationError(str(e)) from e

    def begin_episode(self):
        if self.reset_world:
            self.client.reset(self.np_random)

    def read_state(self):
        status = self.client.read_status()
        return tuple(
            self._read_axis(axis, source, thresholds, status)
            for axis, (source, thresholds) in zip(self.state_space.axes, self.sources)
        )

    def perform_action(self, action):
        a = self.actions[action]
        self.client.execute(a)
        logger.debug("Performed %s", a)
