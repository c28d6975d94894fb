"""
Unified interface for static risk scoring of generated code.

This module provides a small, consistent API over the pipeline: extract
API signatures, compute static metrics for a snippet, and fuse them into a
0-10 risk score with a severity bucket.

Key Features:
- `analyze` / `score` / `assess` entry points
- Signature database loaders returning frozen, injectable handles
- Fenced code-block extraction for assistant replies
"""

from .analyzer import RiskAnalyzer, analyze, assess, default_analyzer
from .config import CodeRiskConfig, FusionWeights, load_config
from .dependability import DependabilityScanner
from .errors import AnalysisError, CodeRiskError, DatabaseLoadError
from .fusion import build_signal_table, score, score_vector, to_vector
from .models import (
    ApiDiffResult,
    ApiKind,
    ApiSignature,
    BigOClass,
    RiskReport,
    ScoreResult,
    ScoreVector,
    Severity,
    StaticMetrics,
)
from .resource_scanner import ResourceScanner
from .rule_db import RuleDatabase, VectorDatabase, load_rule_database, load_vector_database
from .signatures import compute_api_changes, diff_signatures, extract_signatures
from .snippets import Snippet, detect_suggested_filename, extract_code_blocks, primary_snippet

__all__ = [
    "RiskAnalyzer",
    "analyze",
    "default_analyzer",
    "assess",
    "score",
    "score_vector",
    "to_vector",
    "build_signal_table",
    "CodeRiskConfig",
    "FusionWeights",
    "load_config",
    "DependabilityScanner",
    "ResourceScanner",
    "RuleDatabase",
    "VectorDatabase",
    "load_rule_database",
    "load_vector_database",
    "extract_signatures",
    "diff_signatures",
    "compute_api_changes",
    "Snippet",
    "extract_code_blocks",
    "detect_suggested_filename",
    "primary_snippet",
    "ApiDiffResult",
    "ApiKind",
    "ApiSignature",
    "BigOClass",
    "RiskReport",
    "ScoreResult",
    "ScoreVector",
    "Severity",
    "StaticMetrics",
    "CodeRiskError",
    "DatabaseLoadError",
    "AnalysisError",
]
