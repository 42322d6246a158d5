import logging

import numpy as np

from qlab.errors import ConfigurationError, UntrainedGoalError

logger = logging.getLogger(__name__)

# Immediate cost of toggling an actuator, by action kind
ACTION_COSTS = {
    "light": -50.0,
    "blinds": -1.0,
}


def format_q_table(q_table):
    lines = ["Q matrix"]
    for s, row in enumerate(q_table):
        lines.append(f"From state {s}:  " + " ".join(f"{v:6.2f}" for v in row))
    return "\n".join(lines)


class QLearner:
    """
    Tabular Q-learning against a LearningEnvironment, one Q-table per goal.

    A goal describes the desired values of the leading axes, e.g. [2, 3] for
    a light level of 2 in zone 1 and 3 in zone 2.
    """

    def __init__(self, environment, seed=None, log_every=100):
        self.env = environment
        self.rng = np.random.default_rng(seed)
        self.log_every = log_every
        self.q_tables = {}

        logger.info("Initialized with a state space of n=%d", environment.state_count)
        logger.info("Initialized with an action space of m=%d", environment.action_count)

    def goal_keys(self, goal):
        """Axis keys of the goal values, one per leading axis"""
        goal = list(goal)
        axes = self.env.state_space.axes
        if len(goal) > len(axes):
            raise ValueError(f"Goal {goal} is longer than the {len(axes)} state axes")
        try:
            return tuple(axis.key_of(value) for axis, value in zip(axes, goal))
        except KeyError as e:
            raise ValueError(f"Goal {goal}: {e.args[0]}") from None

    def goal_key(self, goal):
        """(length, mixed-radix index of the goal keys over their axes' cardinalities)"""
        keys = self.goal_keys(goal)
        if not keys:
            return (0, 0)
        dims = self.env.state_space.cardinalities[:len(keys)]
        return (len(keys), int(np.ravel_multi_index(keys, dims)))

    def initialize_q_table(self):
        return np.zeros((self.env.state_count, self.env.action_count))

    def q_table(self, goal):
        key = self.goal_key(goal)
        if key not in self.q_tables:
            raise UntrainedGoalError(goal)
        return self.q_tables[key]

    def is_terminal(self, state, goal_keys):
        keys = self.env.state_space.state(state)
        return all(keys[i] == k for i, k in enumerate(goal_keys))

    def get_reward(self, action, reward, terminal):
        r = reward if terminal else 0.0
        return r + ACTION_COSTS.get(self.env.get_action(action).kind, 0.0)

    def _applicable(self, state):
        actions = self.env.applicable_actions(state)
        if not actions:
            raise ConfigurationError(
                f"No applicable actions in state {state} {list(self.env.state_space.decode(state))}"
            )
        return actions

    def select_action(self, state, epsilon, q_table):
        actions = self._applicable(state)
        if self.rng.random() < epsilon:
            return actions[self.rng.integers(len(actions))]
        # argmax keeps the first of equal values
        return actions[int(np.argmax(q_table[state, actions]))]

    def max_q(self, q_table, state):
        return np.max(q_table[state, self._applicable(state)])

    def train(self, goal, episodes, alpha=0.1, gamma=0.95, epsilon=0.1, reward=100.0,
              max_steps=None):
        """
        Compute the Q-table for `goal`, replacing any earlier one.

        Each episode starts from the environment's current state and runs
        until the goal is reached (or `max_steps` actions, if given). The
        table is stored only once every episode has completed. Returns the
        total reward of each episode.
        """
        if episodes < 0:
            raise ValueError(f"episodes must be >= 0, got {episodes}")
        for name, value in (("alpha", alpha), ("gamma", gamma), ("epsilon", epsilon)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        key = self.goal_key(goal)
        goal_keys = self.goal_keys(goal)
        q_table = self.initialize_q_table()
        total_rewards = []

        for episode in range(episodes):
            s, _ = self.env.reset()
            terminal = self.is_terminal(s, goal_keys)
            total_reward = 0.0
            steps = 0

            while not terminal:
                if max_steps is not None and steps >= max_steps:
                    logger.debug("Episode %d truncated after %d steps", episode, steps)
                    break
                a = self.select_action(s, epsilon, q_table)

                self.env.perform_action(a)
                s_new = self.env.read_current_state_index()
                terminal = self.is_terminal(s_new, goal_keys)

                r = self.get_reward(a, reward, terminal)
                q_table[s, a] += alpha * (r + gamma * self.max_q(q_table, s_new) - q_table[s, a])
                logger.debug("STATE: %d action: %d reward: %.1f", s, a, r)

                s = s_new
                total_reward += r
                steps += 1

            total_rewards.append(total_reward)
            if self.log_every and (episode + 1) % self.log_every == 0:
                logger.info("Goal %s Episode %d: Average Reward = %.2f",
                            list(goal), episode + 1, np.mean(total_rewards[-self.log_every:]))
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("%s", format_q_table(q_table))

        self.q_tables[key] = q_table
        return total_rewards

    def get_action(self, goal, state_description):
        """Best known action (tag, payload tags, payload) for the described state"""
        q_table = self.q_table(goal)

        states = self.env.compatible_states(state_description)
        if len(states) != 1:
            raise ValueError(
                f"State description {list(state_description)} matches {len(states)} states, expected 1"
            )
        s = states[0]
        actions = self._applicable(s)
        action = self.env.get_action(actions[int(np.argmax(q_table[s, actions]))])
        return action.tag, list(action.payload_tags), list(action.payload)

    def get_current_state(self):
        """Last state snapshot read from the environment, as axis keys"""
        if self.env.last_state is None:
            self.env.read_current_state_index()
        return list(self.env.last_state)

    def save(self, goal, path):
        np.save(path, self.q_table(goal))
        logger.info("Q-table for goal %s saved to %s", list(goal), path)

    def load(self, goal, path):
        q_table = np.load(path)
        expected = (self.env.state_count, self.env.action_count)
        if q_table.shape != expected:
            raise ValueError(f"Q-table at {path} has shape {q_table.shape}, expected {expected}")
        self.q_tables[self.goal_key(goal)] = q_table
        logger.info("Q-table for goal %s loaded from %s", list(goal), path)
