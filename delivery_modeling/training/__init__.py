"""Model search, champion tracking and final evaluation."""

from .trainer import Champion, Trainer

__all__ = ["Champion", "Trainer"]
