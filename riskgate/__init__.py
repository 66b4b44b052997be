"""
RiskGate

Pre-trade behavioral risk scoring and gating core.
"""

from riskgate.cache import TTLStore
from riskgate.engine import Evaluation, RiskEngine

__all__ = [
    "Evaluation",
    "RiskEngine",
    "TTLStore",
]
