"""
RiskGate Services

External analysis services consumed by the orchestrator.
"""

from riskgate.services.llm_scoring import LLMStressAnalyzer, build_signal_summary

__all__ = ["LLMStressAnalyzer", "build_signal_summary"]
