"""
Layer 1: read-only aggregation of one student's academic week.
"""

from .aggregator import DataAggregator, StudentWeekSnapshot
from .config import Layer1Config

__all__ = ["DataAggregator", "Layer1Config", "StudentWeekSnapshot"]
