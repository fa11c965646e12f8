"""
Layer 3: model-backed report synthesis and database reconciliation.
"""

from .config import Layer3Config
from .reconciler import DerivedFieldReconciler
from .synthesizer import ReportSynthesizer

__all__ = ["DerivedFieldReconciler", "Layer3Config", "ReportSynthesizer"]
