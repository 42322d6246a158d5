import pytest

from qlab.environment import Lab, LearningEnvironment
from qlab.spaces import ActionSpace, Axis, ControllableProperty, StateSpace
from qlab.world.simulator import SimulatedLabWorld


class ToyEnvironment(LearningEnvironment):
    """Actions take effect immediately on an in-memory state"""

    def __init__(self, axes, properties, start):
        state_space = StateSpace(axes)
        super().__init__(state_space, ActionSpace(state_space, properties))
        self.state = list(start)
        self.performed = []

    def read_state(self):
        return tuple(self.state)

    def perform_action(self, action):
        a = self.actions[action]
        self.state[a.axis] = self.state_space.axes[a.axis].key_of(a.payload[0])
        self.performed.append(action)


@pytest.fixture
def make_env():
    return ToyEnvironment


@pytest.fixture
def flip_env():
    return ToyEnvironment(
        [Axis.levels("x", 2)],
        [ControllableProperty("flip", "x", fields={"value": [0, 1]})],
        start=[0],
    )


@pytest.fixture
def world():
    return SimulatedLabWorld(sunshine=400.0)


@pytest.fixture
def lab(world):
    return Lab(world)
