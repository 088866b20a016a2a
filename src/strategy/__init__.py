from .estimators import RiskConfig, RiskLevel, estimate_risk, estimate_window
from .fees import AggregatorSlippage, FeeStructure
from .pair_state import GlobalMeta, PairState, SignalState, pair_key
from .signal_gate import (
    GateDecision,
    GateReason,
    GlobalRateFloor,
    SignalConfig,
    SignalGate,
)

__all__ = [
    "AggregatorSlippage",
    "FeeStructure",
    "GateDecision",
    "GateReason",
    "GlobalMeta",
    "GlobalRateFloor",
    "PairState",
    "RiskConfig",
    "RiskLevel",
    "SignalConfig",
    "SignalGate",
    "SignalState",
    "estimate_risk",
    "estimate_window",
    "pair_key",
]
