import logging
import sys

from qlab.agents.q_learning import QLearner
from qlab.environment import Lab, load_descriptor
from qlab.world.simulator import SimulatedLabWorld

# Light levels [z1, z2] reachable under the simulated sunshine
GOALS = [[2, 2], [3, 2], [3, 3], [0, 2]]
EPISODES = 500


def main(descriptor_path=None):
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    world = SimulatedLabWorld(sunshine=400.0)
    lab = Lab(world, load_descriptor(descriptor_path), reset_world=True)
    learner = QLearner(lab, seed=0)

    for goal in GOALS:
        learner.train(goal, episodes=EPISODES, alpha=0.5, gamma=0.9, epsilon=0.2,
                      reward=100.0, max_steps=50)

    # Show the learned policy from a dark lab
    start = [0, 0, False, False, False, False, 2]
    for goal in GOALS:
        tag, payload_tags, payload = learner.get_action(goal, start)
        print(f"Goal {goal}: from {start} do {tag} {dict(zip(payload_tags, payload))}")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
