"""
RiskGate Processors

Public exports for signal sanitation and feature engineering.
"""

from riskgate.processors.facial import FacialAdapter, FacialFeatures
from riskgate.processors.signals import SignalProcessor, SignalSummary
from riskgate.processors.signatures import SignatureExtractor

__all__ = [
    "FacialAdapter",
    "FacialFeatures",
    "SignalProcessor",
    "SignalSummary",
    "SignatureExtractor",
]
