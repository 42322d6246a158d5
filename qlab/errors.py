class QLabError(Exception):
    """Base class for errors raised by qlab."""


class ConfigurationError(QLabError):
    """The environment model cannot support learning as declared."""


class UntrainedGoalError(QLabError, LookupError):
    """No Q-table has been computed for the requested goal."""

    def __init__(self, goal):
        super().__init__(f"No Q-table trained for goal {list(goal)}")
        self.goal = tuple(goal)
