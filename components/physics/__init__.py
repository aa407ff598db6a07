"""
Physics simulation for the cheese cave device.

- Cave environment (temperature, humidity, fan failure)
"""

from components.physics.cave_physics import EnvironmentSimulator

__all__ = [
    "EnvironmentSimulator",
]
