"""Activity logging package."""

from splitledger.activity.logger import ActivityLogger

__all__ = ["ActivityLogger"]
