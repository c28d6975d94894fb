"""
Score fusion: normalize raw metrics into (F, R, D) and blend them into a 0-10 score.

The blend mixes a linear candidate B with a dependability-anchored candidate C.
Once D rises through the 0.4-0.7 band the weight smoothly shifts toward C, so
a severe vulnerability is not diluted by low functionality or resource impact.
"""

import math
from typing import Dict, Mapping, Optional, Union

from .config import FusionWeights
from .models import FusionComponents, ScoreResult, ScoreVector, Severity, StaticMetrics
from .resource_scanner import map_big_o

# Functionality fallback weights (no call graph)
WF_API = 0.40
WF_CORE = 0.25
WF_DIFF = 0.20
WF_SCHEMA = 0.15

# Resource weights
WR_BIG_O = 0.32
WR_CC = 0.18
WR_MEM = 0.22
WR_EXT = 0.18
WR_IO = 0.10

# Dependability weights
WD_CVE = 0.42
WD_REP = 0.25
WD_LIC = 0.10
WD_PERM = 0.23

CC_RATE = 0.12
MEM_BYTES_BITS = 24.0
MEM_ALLOC_RATE = 0.06
MEM_BYTES_SHARE = 0.7
EXT_RATE = 0.05
IO_RATE = 0.06

SMOOTHSTEP_LOW = 0.4
SMOOTHSTEP_HIGH = 0.7
RHO_EPSILON = 1e-6

# (threshold, severity, level, action), highest first
SEVERITY_BANDS = (
    (9.0, Severity.RED, "CRITICAL", "Comprehensive audit needed"),
    (7.0, Severity.ORANGE, "HIGH", "Detailed review required"),
    (4.0, Severity.YELLOW, "MEDIUM", "Standard review process"),
)
LOWEST_BAND = (Severity.GREEN, "LOW", "Quick scan sufficient")

WeightsLike = Union[FusionWeights, Mapping[str, float], None]


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def saturate(x: float, k: float) -> float:
    """1 - e^(-k*x), clamped to [0, 1]."""
    return clamp01(1 - math.exp(-k * max(0.0, x)))


def smoothstep(x: float, a: float, b: float) -> float:
    if x <= a:
        return 0.0
    if x >= b:
        return 1.0
    t = (x - a) / (b - a)
    return t * t * (3 - 2 * t)


def api_ratio(m: StaticMetrics) -> float:
    return clamp01(m.api_changes / max(1, m.total_apis))


def diff_ratio(m: StaticMetrics) -> float:
    return clamp01(m.diff_changed_lines / max(1, m.total_lines))


def memory_norm(m: StaticMetrics) -> float:
    byte_norm = clamp01(math.log2(max(1, m.mem_bytes_approx)) / MEM_BYTES_BITS)
    alloc_norm = saturate(m.mem_allocs, MEM_ALLOC_RATE)
    return clamp01(MEM_BYTES_SHARE * byte_norm + (1 - MEM_BYTES_SHARE) * alloc_norm)


def functionality(m: StaticMetrics) -> float:
    """Graph-based score when available, structural fallback otherwise."""
    if m.semantic_f is not None:
        return clamp01(m.semantic_f.score)
    v = (
        api_ratio(m) * WF_API
        + (1.0 if m.core_touched else 0.0) * WF_CORE
        + diff_ratio(m) * WF_DIFF
        + (1.0 if m.schema_changed else 0.0) * WF_SCHEMA
    )
    return clamp01(v)


def resource(m: StaticMetrics) -> float:
    v = (
        map_big_o(m.big_o) * WR_BIG_O
        + saturate(m.cc - 1, CC_RATE) * WR_CC
        + memory_norm(m) * WR_MEM
        + saturate(m.external_calls, EXT_RATE) * WR_EXT
        + saturate(m.io_calls, IO_RATE) * WR_IO
    )
    return clamp01(v)


def dependability(m: StaticMetrics) -> float:
    v = (
        m.cve_severity * WD_CVE
        + (1 - m.lib_reputation) * WD_REP
        + (1.0 if m.license_mismatch else 0.0) * WD_LIC
        + m.perm_risk * WD_PERM
    )
    return clamp01(v)


def to_vector(m: StaticMetrics) -> ScoreVector:
    return ScoreVector(functionality(m), resource(m), dependability(m))


def build_signal_table(m: StaticMetrics) -> Dict[str, Dict[str, float]]:
    """Per-dimension intermediate signals, for display and auditing."""
    semantic = m.semantic_f
    return {
        "F": {
            "apiRatio": api_ratio(m),
            "coreModuleModified": 1.0 if m.core_touched else 0.0,
            "diffLineRatio": diff_ratio(m),
            "schemaChanged": 1.0 if m.schema_changed else 0.0,
            "semanticScore": semantic.score if semantic else 0.0,
            "influencedEntrypoints": semantic.impacted_entrypoint_ratio if semantic else 0.0,
            "reachability": semantic.reachable_nodes_ratio if semantic else 0.0,
            "centrality": semantic.centrality_score if semantic else 0.0,
        },
        "R": {
            "timeComplexity": map_big_o(m.big_o),
            "cyclomaticComplexity": float(m.cc),
            "loopDepthApprox": float(m.loop_depth_approx),
            "memBytesApprox": float(m.mem_bytes_approx),
            "memNorm": memory_norm(m),
            "externalCallNorm": saturate(m.external_calls, EXT_RATE),
            "ioCallNorm": saturate(m.io_calls, IO_RATE),
        },
        "D": {
            "cveSeverity": m.cve_severity,
            "libReputation": m.lib_reputation,
            "licenseMismatch": 1.0 if m.license_mismatch else 0.0,
            "sensitivePerm": m.perm_risk,
        },
    }


def coerce_weights(weights: WeightsLike) -> FusionWeights:
    if weights is None:
        return FusionWeights()
    if isinstance(weights, FusionWeights):
        return weights
    return FusionWeights.model_validate(dict(weights))


def severity_for(score: float):
    for threshold, severity, level, action in SEVERITY_BANDS:
        if score >= threshold:
            return severity, level, action
    return LOWEST_BAND


def score_vector(vector: ScoreVector, weights: WeightsLike = None) -> ScoreResult:
    """
    Blend (F, R, D) into the final score.

        B     = 10 * (wF*F + wR*R + wD*D)
        mixFR = (wF*F + wR*R) / (wF + wR)
        C     = min(10, 10 * (D + (1 - D) * mixFR))
        alpha = smoothstep(D, 0.4, 0.7) * (0.5 + 0.5 * D / (F + R + D))
        score = min(10, (1 - alpha) * B + alpha * C)
    """
    w = coerce_weights(weights)
    sf = clamp01(vector.functionality)
    sr = clamp01(vector.resource)
    sd = clamp01(vector.dependability)

    b = 10 * (w.functionality * sf + w.resource * sr + w.dependability * sd)

    fr_sum = w.functionality + w.resource
    mix_fr = (w.functionality / fr_sum) * sf + (w.resource / fr_sum) * sr if fr_sum > 0 else 0.0
    c = min(10.0, 10 * (sd + (1 - sd) * mix_fr))

    rho = sd / (sf + sr + sd + RHO_EPSILON)
    s = smoothstep(sd, SMOOTHSTEP_LOW, SMOOTHSTEP_HIGH)
    alpha = s * (0.5 + 0.5 * rho)

    final = min(10.0, (1 - alpha) * b + alpha * c)
    severity, level, action = severity_for(final)

    return ScoreResult(
        score=final,
        severity=severity,
        level=level,
        action=action,
        weights=w,
        components=FusionComponents(
            b=b, c=c, alpha=alpha, rho=rho, s=s, sf=sf, sr=sr, sd=sd, mix_fr=mix_fr,
        ),
    )


def score(metrics: StaticMetrics, weights: WeightsLike = None) -> ScoreResult:
    """Normalize `metrics` into (F, R, D) and fuse them."""
    return score_vector(to_vector(metrics), weights)
