"""
SwingSync - Golf Swing Comparison Core

Modules:
    domain: Pose samples, swing phases, calibration and replay data models
    services: Phase detection, calibration, overlay math and dual-stream replay
"""

from . import domain
from . import services

__version__ = "1.0.0"
