"""
Core data models for the risk scoring pipeline.

This module contains pure data structures shared by the extractors, scanners
and the fusion layer. Everything returned to a caller is frozen: a metrics
record or a score is built once per analyzed snippet and never mutated.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .config import FusionWeights


class ApiKind(str, Enum):
    """Closed set of declaration kinds that count as public API."""
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    VAR = "var"


class BigOClass(str, Enum):
    CONSTANT = "O(1)"
    LOGARITHMIC = "O(log n)"
    LINEAR = "O(n)"
    LINEARITHMIC = "O(n log n)"
    QUADRATIC = "O(n^2)"
    CUBIC = "O(n^3)"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"


@dataclass(frozen=True)
class ApiSignature:
    """A named declaration and its verbatim source text."""
    kind: ApiKind
    name: str
    signature: str


@dataclass(frozen=True)
class ApiDiffResult:
    added: int = 0
    removed: int = 0
    changed: int = 0
    api_changes: int = 0
    total_apis: int = 0


@dataclass(frozen=True)
class SemanticFunctionality:
    """Graph-based Functionality signal and the ratios it was built from."""
    score: float
    impacted_entrypoint_ratio: float
    reachable_nodes_ratio: float
    centrality_score: float
    nodes: int = 0
    entrypoints: int = 0


@dataclass(frozen=True)
class StaticMetrics:
    """Aggregated static signals for one analyzed snippet."""
    # --- Functionality ---
    api_changes: int = 0
    total_apis: int = 0
    core_touched: bool = False
    diff_changed_lines: int = 0
    total_lines: int = 1
    schema_changed: bool = False
    semantic_f: Optional[SemanticFunctionality] = None

    # --- Resource ---
    big_o: BigOClass = BigOClass.UNKNOWN
    cc: int = 1
    loop_count: int = 0
    loop_depth_approx: int = 0
    recursion: bool = False
    divide_and_conquer_hint: bool = False
    sort_hint: bool = False
    regex_dos_hint: bool = False
    mem_allocs: int = 0
    mem_bytes_approx: int = 0
    external_calls: int = 0
    io_calls: int = 0

    # --- Dependability ---
    cve_severity: float = 0.0
    lib_reputation: float = 0.65
    license_mismatch: bool = False
    perm_risk: float = 0.0

    reasons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["big_o"] = self.big_o.value
        data["reasons"] = list(self.reasons)
        return data


@dataclass(frozen=True)
class ScoreVector:
    """Normalized (F, R, D) dimension scores, each in [0, 1]."""
    functionality: float
    resource: float
    dependability: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.functionality, self.resource, self.dependability)


@dataclass(frozen=True)
class FusionComponents:
    """Intermediate terms of the nonlinear blend, kept for auditing."""
    b: float
    c: float
    alpha: float
    rho: float
    s: float
    sf: float
    sr: float
    sd: float
    mix_fr: float


@dataclass(frozen=True)
class ScoreResult:
    score: float
    severity: Severity
    level: str
    action: str
    weights: FusionWeights
    components: FusionComponents

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "severity": self.severity.value,
            "level": self.level,
            "action": self.action,
            "weights": self.weights.model_dump(),
            "components": asdict(self.components),
        }


@dataclass(frozen=True)
class RiskReport:
    """Everything one `assess` call produced, ready to be serialized."""
    metrics: StaticMetrics
    vector: ScoreVector
    signal_table: Dict[str, Dict[str, float]]
    result: ScoreResult
    reasons: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vector": list(self.vector.as_tuple()),
            "score": self.result.score,
            "severity": self.result.severity.value,
            "level": self.result.level,
            "action": self.result.action,
            "weights": self.result.weights.model_dump(),
            "components": asdict(self.result.components),
            "signal_table": self.signal_table,
            "reasons": list(self.reasons),
            "metrics": self.metrics.to_dict(),
        }
