"""Riddle rotation — decide the next catalog entry and publish it."""

from riddle.rotation.decision import RotationDecisionEngine
from riddle.rotation.rotator import Rotator

__all__ = ["RotationDecisionEngine", "Rotator"]
