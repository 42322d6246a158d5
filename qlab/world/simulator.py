from qlab.environment import WAS


class SimulatedLabWorld:
    """
    In-process stand-in for the lab service.

    Each zone's light level is the lamp output (when on) plus the share of the
    sunshine let in by the blinds (when up). Actions take effect immediately.
    """

    LAMP_LUX = 200.0
    BLINDS_TRANSMISSION = 0.5

    ACTUATORS = {
        WAS + "SetZ1Light": "z1_light",
        WAS + "SetZ2Light": "z2_light",
        WAS + "SetZ1Blinds": "z1_blinds",
        WAS + "SetZ2Blinds": "z2_blinds",
    }

    def __init__(self, sunshine=400.0, z1_light=False, z2_light=False,
                 z1_blinds=False, z2_blinds=False):
        self.sunshine = sunshine
        self.status = {
            "z1_light": z1_light,
            "z2_light": z2_light,
            "z1_blinds": z1_blinds,
            "z2_blinds": z2_blinds,
        }
        self.executed = []

    def _zone_lux(self, zone):
        lux = self.LAMP_LUX if self.status[f"{zone}_light"] else 0.0
        if self.status[f"{zone}_blinds"]:
            lux += self.BLINDS_TRANSMISSION * self.sunshine
        return lux

    def read_status(self):
        return {
            WAS + "Z1Level": self._zone_lux("z1"),
            WAS + "Z2Level": self._zone_lux("z2"),
            WAS + "Z1Light": self.status["z1_light"],
            WAS + "Z2Light": self.status["z2_light"],
            WAS + "Z1Blinds": self.status["z1_blinds"],
            WAS + "Z2Blinds": self.status["z2_blinds"],
            WAS + "Sunshine": self.sunshine,
        }

    def reset(self, rng):
        """Put every actuator in a random position"""
        for name in self.status:
            self.status[name] = bool(rng.integers(2))

    def execute(self, action):
        if action.tag not in self.ACTUATORS:
            raise ValueError(f"Unknown action {action.tag}")
        self.status[self.ACTUATORS[action.tag]] = bool(action.payload[0])
        self.executed.append((action.tag, action.payload))
