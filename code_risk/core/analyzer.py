"""
Static risk pipeline: one snippet in, StaticMetrics / ScoreResult out.

Signature databases are loaded by the caller and injected through a
DependabilityScanner, so tests can run the whole pipeline against fixture
databases. The module-level analyze/assess helpers share one analyzer with
empty databases when no scanner is given.
"""

import logging
from pathlib import PurePosixPath
from typing import List, Optional

from .call_graph_builder import CallGraphBuilder
from .config import CodeRiskConfig
from .dependability import DependabilityScanner
from .errors import AnalysisError
from .fusion import WeightsLike, build_signal_table, score, to_vector
from .impact import functionality_score
from .models import ApiDiffResult, RiskReport, ScoreResult, SemanticFunctionality, StaticMetrics
from .resource_scanner import ResourceScanner
from .rule_db import load_rule_database, load_vector_database
from .signatures import diff_signatures, extract_signatures
from .structural import count_lines, detect_schema_change, estimate_changed_lines, is_core_module

# Languages whose snippets get a call-graph based Functionality score
GRAPH_LANGUAGES = {
    "", "plaintext", "text",
    "ts", "tsx", "mts", "cts", "typescript",
    "js", "jsx", "mjs", "cjs", "javascript", "node",
}


def language_from_path(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    suffix = PurePosixPath(path.replace("\\", "/")).suffix
    return suffix.lstrip(".").lower() or None


def supports_call_graph(language: Optional[str]) -> bool:
    return (language or "").strip().lower() in GRAPH_LANGUAGES


class RiskAnalyzer:
    """
    Runs the static pipeline for one snippet at a time.

    Args:
        dependability: Scanner holding the loaded signature databases. An empty
            scanner is used when omitted, which scores CVE risk as 0 and adds
            two warnings to every result.
        resource: Resource scanner; swap extractors here to plug in stronger analyzers.
        weights: Default top-level fusion weights.
        unit: Name of the analyzed unit used in call-graph node keys.
    """

    def __init__(
        self,
        dependability: Optional[DependabilityScanner] = None,
        resource: Optional[ResourceScanner] = None,
        weights: WeightsLike = None,
        unit: str = "snippet.ts",
    ):
        self.dependability = dependability or DependabilityScanner()
        self.resource = resource or ResourceScanner()
        self.weights = weights
        self.graph_builder = CallGraphBuilder(unit=unit)

    @classmethod
    def from_config(cls, config: CodeRiskConfig, strict: bool = False) -> "RiskAnalyzer":
        """Load both databases named by `config` and build an analyzer around them."""
        scanner = DependabilityScanner(
            rule_database=load_rule_database(config.rules_db_path, strict=strict),
            vector_database=load_vector_database(config.vector_db_path, strict=strict),
            proximity_default_lines=config.proximity_default_lines,
            top_k=config.top_k,
        )
        return cls(dependability=scanner, weights=config.weights)

    def analyze(
        self,
        code: str,
        hinted_path: Optional[str] = None,
        *,
        language: Optional[str] = None,
        previous_code: Optional[str] = None,
    ) -> StaticMetrics:
        """
        Compute StaticMetrics for `code`.

        Args:
            code: Snippet to analyze. Non-text or blank input yields zeroed
                structural and resource metrics.
            hinted_path: Where the snippet would be written; drives the
                core-module flag and, absent `language`, the grammar choice.
            language: Code-fence language tag ('ts', 'tsx', 'javascript', ...).
            previous_code: Prior version of the same file. When omitted, every
                declaration is treated as new and changed, so API changes equal
                the declaration count and graph impact covers the whole unit.
        """
        text = code if isinstance(code, str) else ""
        warnings = tuple(f"warn:{w}" for w in self.dependability.warnings)
        lang = language or language_from_path(hinted_path)

        if not text.strip():
            return StaticMetrics(
                lib_reputation=self.dependability.scan("").lib_reputation,
                reasons=warnings,
            )

        try:
            resource = self.resource.scan(text)
            security = self.dependability.scan(text)
        except Exception as e:
            raise AnalysisError(f"Static analysis failed: {e}") from e

        diff = self._api_diff(text, previous_code, lang)
        schema = detect_schema_change(text)
        core_touched = is_core_module(hinted_path)
        semantic_f = self._semantic_functionality(text, previous_code, lang)

        reasons: List[str] = []
        reasons.extend(security.reasons)
        reasons.extend(resource.reasons)
        if schema.schema_changed:
            reasons.append(schema.reason)
        if core_touched:
            reasons.append(f"Core module touched: {hinted_path}")
        reasons.extend(warnings)

        complexity = resource.complexity
        return StaticMetrics(
            api_changes=diff.api_changes,
            total_apis=diff.total_apis,
            core_touched=core_touched,
            diff_changed_lines=estimate_changed_lines(text, previous_code),
            total_lines=max(1, count_lines(text)),
            schema_changed=schema.schema_changed,
            semantic_f=semantic_f,
            big_o=complexity.big_o,
            cc=complexity.cc,
            loop_count=complexity.loop_count,
            loop_depth_approx=complexity.loop_depth_approx,
            recursion=complexity.recursion,
            divide_and_conquer_hint=complexity.divide_and_conquer_hint,
            sort_hint=complexity.sort_hint,
            regex_dos_hint=complexity.regex_dos_hint,
            mem_allocs=resource.memory.mem_allocs,
            mem_bytes_approx=resource.memory.mem_bytes_approx,
            external_calls=resource.external.external_calls,
            io_calls=resource.external.io_calls,
            cve_severity=security.cve_severity,
            lib_reputation=security.lib_reputation,
            license_mismatch=security.license_mismatch,
            perm_risk=security.perm_risk,
            reasons=tuple(reasons),
        )

    def score(self, metrics: StaticMetrics, weights: WeightsLike = None) -> ScoreResult:
        return score(metrics, weights if weights is not None else self.weights)

    def assess(
        self,
        code: str,
        hinted_path: Optional[str] = None,
        *,
        language: Optional[str] = None,
        previous_code: Optional[str] = None,
        weights: WeightsLike = None,
    ) -> RiskReport:
        """Analyze, normalize and score in one step."""
        metrics = self.analyze(code, hinted_path, language=language, previous_code=previous_code)
        result = self.score(metrics, weights)
        return RiskReport(
            metrics=metrics,
            vector=to_vector(metrics),
            signal_table=build_signal_table(metrics),
            result=result,
            reasons=metrics.reasons,
        )

    def _api_diff(self, code: str, previous_code: Optional[str], language: Optional[str]) -> ApiDiffResult:
        previous = extract_signatures(previous_code, language) if previous_code else []
        return diff_signatures(previous, extract_signatures(code, language))

    def _semantic_functionality(
        self,
        code: str,
        previous_code: Optional[str],
        language: Optional[str],
    ) -> Optional[SemanticFunctionality]:
        if not supports_call_graph(language):
            return None
        try:
            graph = self.graph_builder.build(code, previous_code=previous_code, language=language)
            return functionality_score(graph)
        except Exception as e:
            logging.debug(f"Graph-based functionality unavailable, using structural fallback: {e}")
            return None


_default_analyzer: Optional[RiskAnalyzer] = None


def default_analyzer() -> RiskAnalyzer:
    """Shared analyzer with empty databases, built on first use so its warnings are logged once."""
    global _default_analyzer
    if _default_analyzer is None:
        _default_analyzer = RiskAnalyzer()
    return _default_analyzer


def analyze(
    code: str,
    hinted_path: Optional[str] = None,
    *,
    language: Optional[str] = None,
    previous_code: Optional[str] = None,
    scanner: Optional[DependabilityScanner] = None,
) -> StaticMetrics:
    analyzer = RiskAnalyzer(dependability=scanner) if scanner is not None else default_analyzer()
    return analyzer.analyze(code, hinted_path, language=language, previous_code=previous_code)


def assess(
    code: str,
    hinted_path: Optional[str] = None,
    *,
    language: Optional[str] = None,
    previous_code: Optional[str] = None,
    scanner: Optional[DependabilityScanner] = None,
    weights: WeightsLike = None,
) -> RiskReport:
    if scanner is None and weights is None:
        analyzer = default_analyzer()
    else:
        analyzer = RiskAnalyzer(dependability=scanner, weights=weights)
    return analyzer.assess(code, hinted_path, language=language, previous_code=previous_code)
