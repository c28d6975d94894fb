import itertools

import pytest

from code_risk.core.config import FusionWeights
from code_risk.core.fusion import (
    build_signal_table,
    dependability,
    functionality,
    resource,
    score,
    score_vector,
    severity_for,
    smoothstep,
)
from code_risk.core.models import BigOClass, ScoreVector, SemanticFunctionality, Severity, StaticMetrics

GRID = [0.0, 0.1, 0.25, 0.4, 0.5, 0.6, 0.7, 0.85, 1.0]


def _score(f: float, r: float, d: float, weights=None) -> float:
    return score_vector(ScoreVector(f, r, d), weights).score


def test_smoothstep_edges_and_shape():
    assert smoothstep(0.2, 0.4, 0.7) == 0.0
    assert smoothstep(0.4, 0.4, 0.7) == 0.0
    assert smoothstep(0.7, 0.4, 0.7) == 1.0
    assert smoothstep(0.9, 0.4, 0.7) == 1.0
    assert smoothstep(0.55, 0.4, 0.7) == pytest.approx(0.5)

    xs = [0.4 + i * 0.3 / 50 for i in range(51)]
    ys = [smoothstep(x, 0.4, 0.7) for x in xs]
    assert all(b >= a for a, b in zip(ys, ys[1:]))
    assert max(abs(b - a) for a, b in zip(ys, ys[1:])) < 0.05


def test_score_stays_in_range():
    for f, r, d in itertools.product(GRID, repeat=3):
        assert 0.0 <= _score(f, r, d) <= 10.0


def test_score_is_non_decreasing_in_dependability():
    for f, r in itertools.product(GRID, repeat=2):
        scores = [_score(f, r, d) for d in GRID]
        assert all(b >= a - 1e-9 for a, b in zip(scores, scores[1:]))


def test_score_is_non_decreasing_in_functionality_and_resource_below_the_blend_band():
    for d in [0.0, 0.2, 0.4]:
        for other in GRID:
            by_f = [_score(x, other, d) for x in GRID]
            by_r = [_score(other, x, d) for x in GRID]
            assert all(b >= a - 1e-9 for a, b in zip(by_f, by_f[1:]))
            assert all(b >= a - 1e-9 for a, b in zip(by_r, by_r[1:]))


def test_low_dependability_score_is_the_linear_blend():
    result = score_vector(ScoreVector(0.5, 0.5, 0.2))

    assert result.components.alpha == 0.0
    assert result.score == pytest.approx(10 * (0.4 * 0.5 + 0.3 * 0.5 + 0.3 * 0.2))


def test_severe_vulnerability_dominates():
    result = score_vector(ScoreVector(0.9, 0.1, 0.95))

    assert result.components.s == 1.0
    assert result.components.alpha > 0.7
    assert abs(result.score - result.components.c) < abs(result.score - result.components.b)
    assert result.score >= 9.0
    assert result.severity == Severity.RED
    assert result.level == "CRITICAL"


def test_zero_vector_is_green():
    result = score_vector(ScoreVector(0.0, 0.0, 0.0))

    assert result.score == 0.0
    assert result.severity == Severity.GREEN
    assert result.action == "Quick scan sufficient"


@pytest.mark.parametrize("value, severity, level", [
    (0.0, Severity.GREEN, "LOW"),
    (3.99, Severity.GREEN, "LOW"),
    (4.0, Severity.YELLOW, "MEDIUM"),
    (6.99, Severity.YELLOW, "MEDIUM"),
    (7.0, Severity.ORANGE, "HIGH"),
    (8.99, Severity.ORANGE, "HIGH"),
    (9.0, Severity.RED, "CRITICAL"),
    (10.0, Severity.RED, "CRITICAL"),
])
def test_severity_thresholds(value, severity, level):
    assert severity_for(value)[:2] == (severity, level)


def test_weights_accept_aliases_and_mappings():
    custom = {"wF": 1.0, "wR": 0.0, "wD": 0.0}
    result = score_vector(ScoreVector(0.5, 1.0, 0.0), custom)

    assert result.weights == FusionWeights(functionality=1.0, resource=0.0, dependability=0.0)
    assert result.score == pytest.approx(5.0)


def test_negative_weights_are_rejected():
    with pytest.raises(ValueError):
        score_vector(ScoreVector(0.5, 0.5, 0.5), {"wF": -0.1})


def test_structural_functionality_fallback():
    m = StaticMetrics(api_changes=2, total_apis=4, core_touched=True, diff_changed_lines=10, total_lines=100)
    assert functionality(m) == pytest.approx(0.5 * 0.40 + 0.25 + 0.1 * 0.20)


def test_semantic_functionality_takes_precedence():
    semantic = SemanticFunctionality(score=0.123, impacted_entrypoint_ratio=0.0,
                                     reachable_nodes_ratio=0.41, centrality_score=0.0)
    m = StaticMetrics(api_changes=4, total_apis=4, core_touched=True, semantic_f=semantic)
    assert functionality(m) == pytest.approx(0.123)


def test_default_metrics_normalize():
    m = StaticMetrics()

    assert functionality(m) == 0.0
    assert resource(m) == pytest.approx(0.50 * 0.32)
    assert dependability(m) == pytest.approx((1 - 0.65) * 0.25)


def test_resource_grows_with_cost():
    cheap = StaticMetrics(big_o=BigOClass.LINEAR)
    costly = StaticMetrics(big_o=BigOClass.CUBIC, cc=25, mem_allocs=30, mem_bytes_approx=1 << 20,
                           external_calls=10, io_calls=10)

    assert resource(costly) > resource(cheap)
    assert resource(costly) <= 1.0


def test_dependability_components():
    m = StaticMetrics(cve_severity=1.0, lib_reputation=0.0, license_mismatch=True, perm_risk=1.0)
    assert dependability(m) == pytest.approx(1.0)


def test_score_from_metrics_matches_vector_path():
    m = StaticMetrics(cve_severity=0.8, perm_risk=0.4, big_o=BigOClass.QUADRATIC)
    vector = ScoreVector(functionality(m), resource(m), dependability(m))

    assert score(m).score == pytest.approx(score_vector(vector).score)


def test_signal_table_layout():
    table = build_signal_table(StaticMetrics(api_changes=1, total_apis=2, big_o=BigOClass.QUADRATIC))

    assert set(table) == {"F", "R", "D"}
    assert table["F"]["apiRatio"] == 0.5
    assert table["F"]["semanticScore"] == 0.0
    assert table["R"]["timeComplexity"] == 0.70
    assert table["D"]["libReputation"] == 0.65
