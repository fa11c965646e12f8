"""Layer 4: weekly report email rendering and delivery."""

from .config import Layer4Config
from .dispatcher import NotificationDispatcher

__all__ = ["Layer4Config", "NotificationDispatcher"]
