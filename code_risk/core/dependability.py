"""
Dependability (security) signals.

Two independent vulnerability detectors feed `cve_severity`:

* RegexRuleEngine scores each regex signature from weighted rule hits,
  co-occurrence and line-proximity bonuses, and negative penalties.
* VectorSimilarityEngine turns the snippet into a token-weight vector and
  compares it with every vector signature by cosine similarity.

Each engine keeps its three strongest signatures and folds them with a
probabilistic OR, and the two engine results are folded the same way, so one
strong finding dominates several weak ones instead of being averaged away.
"""

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .config import DEFAULT_PROXIMITY_LINES, DEFAULT_TOP_K
from .rule_db import RuleDatabase, RuleSignature, TokenizerRule, VectorDatabase, VectorSignature

SUPPORT_BOOST_CAP = 0.10
SUPPORT_BOOST_SCALE = 1000.0
RAW_SCORE_STEEPNESS = 3.0
SIMILARITY_EXPONENT = 0.8
SIMILARITY_GAIN = 1.2
REPORT_THRESHOLD = 0.15
REPORT_LIMIT = 5

PROCESS_EXECUTION = re.compile(r"\b(?:child_process|exec\(|spawn\(|system\(|popen\(|subprocess\.)", re.IGNORECASE)
FS_MUTATION = re.compile(
    r"\bfs\.(?:promises\.)?(?:write|append|unlink|rm|rmdir|mkdir|rename|copyFile|chmod|chown)", re.IGNORECASE
)
SECRET_ACCESS = re.compile(r"\bprocess\.env\b|secret|password|credential", re.IGNORECASE)
KNOWN_BAD_PACKAGE = re.compile(r"vulnerable[_-]?pkg[_-]?2023", re.IGNORECASE)
WORD_TOKEN = re.compile(r"^[A-Za-z0-9_]+$")

PROCESS_EXECUTION_RISK = 0.4
FS_MUTATION_RISK = 0.3
SECRET_ACCESS_RISK = 0.3
DEFAULT_LIB_REPUTATION = 0.65
KNOWN_BAD_LIB_REPUTATION = 0.1


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


@lru_cache(maxsize=4096)
def compile_pattern(rx: str) -> Optional[Pattern[str]]:
    """Case-insensitive compile; invalid patterns return None and are skipped by callers."""
    try:
        return re.compile(rx, re.IGNORECASE)
    except re.error as e:
        logging.debug(f"Skipping malformed rule pattern {rx!r}: {e}")
        return None


def pattern_matches(rx: str, text: str) -> bool:
    pattern = compile_pattern(rx)
    return pattern is not None and pattern.search(text) is not None


def probabilistic_or(severities: Iterable[float]) -> float:
    agg = 0.0
    for severity in severities:
        agg = 1 - (1 - agg) * (1 - severity)
    return clamp01(agg)


def cosine_similarity(a: Dict[str, float], b: Dict[str, float]) -> float:
    dot = na = nb = 0.0
    for key in set(a) | set(b):
        va = a.get(key, 0.0)
        vb = b.get(key, 0.0)
        dot += va * vb
        na += va * va
        nb += vb * vb
    if not na or not nb:
        return 0.0
    return dot / (math.sqrt(na) * math.sqrt(nb))


@dataclass(frozen=True)
class SignatureMatch:
    id: str
    title: str
    severity: float
    raw: float = 0.0
    similarity: float = 0.0
    matched: Tuple[str, ...] = ()
    notes: str = ""


@dataclass(frozen=True)
class EngineResult:
    severity: float
    matches: Tuple[SignatureMatch, ...] = ()


@dataclass(frozen=True)
class DependabilitySignals:
    cve_severity: float = 0.0
    regex_severity: float = 0.0
    vector_severity: float = 0.0
    lib_reputation: float = DEFAULT_LIB_REPUTATION
    license_mismatch: bool = False
    perm_risk: float = 0.0
    reasons: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


def _top_k(results: Sequence[SignatureMatch], k: int) -> List[SignatureMatch]:
    return sorted(results, key=lambda r: r.severity, reverse=True)[:k]


class RegexRuleEngine:
    """Scores regex signatures against a snippet."""

    def __init__(
        self,
        database: RuleDatabase,
        proximity_default_lines: int = DEFAULT_PROXIMITY_LINES,
        top_k: int = DEFAULT_TOP_K,
    ):
        self.database = database
        self.proximity_default_lines = proximity_default_lines
        self.top_k = top_k

    def raw_score(self, sig: RuleSignature, lower: str, lines: List[str]) -> Tuple[float, List[str]]:
        raw = 0.0
        matched: List[str] = []

        for rule in sig.rules:
            if pattern_matches(rule.rx, lower):
                raw += rule.w * rule.idf
                matched.append(rule.token or rule.rx)

        for co in sig.cooccur:
            if co.patterns and all(pattern_matches(rx, lower) for rx in co.patterns):
                raw += co.bonus

        for prox in sig.proximity:
            first = compile_pattern(prox.a)
            second = compile_pattern(prox.b)
            if first is None or second is None:
                continue
            window = prox.lines if prox.lines is not None else self.proximity_default_lines
            for i, line in enumerate(lines):
                if not first.search(line):
                    continue
                lo = max(0, i - window)
                hi = min(len(lines), i + window + 1)
                if any(second.search(lines[j]) for j in range(lo, hi)):
                    raw += prox.bonus

        for neg in sig.negatives:
            if pattern_matches(neg.rx, lower):
                raw -= neg.penalty

        return max(0.0, raw), matched

    def severity(self, sig: RuleSignature, raw: float) -> float:
        base = clamp01(sig.base_severity)
        support_boost = min(SUPPORT_BOOST_CAP, max(0.0, sig.support_docs) / SUPPORT_BOOST_SCALE)
        return clamp01(base * (1 + support_boost) * (1 - math.exp(-RAW_SCORE_STEEPNESS * raw)))

    def scan(self, code: str) -> EngineResult:
        if not len(self.database) or not code:
            return EngineResult(severity=0.0)

        lower = code.lower()
        lines = re.split(r"\r?\n", lower)
        results: List[SignatureMatch] = []
        for sig in self.database.signatures:
            raw, matched = self.raw_score(sig, lower, lines)
            results.append(SignatureMatch(
                id=sig.id,
                title=sig.title,
                severity=self.severity(sig, raw),
                raw=round(raw, 3),
                matched=tuple(matched),
            ))

        ranked = _top_k(results, len(results))
        return EngineResult(
            severity=probabilistic_or(r.severity for r in ranked[:self.top_k]),
            matches=tuple(r for r in ranked if r.severity > REPORT_THRESHOLD)[:REPORT_LIMIT],
        )


class VectorSimilarityEngine:
    """Cosine similarity between the snippet's token vector and each vector signature."""

    def __init__(
        self,
        database: VectorDatabase,
        rule_database: Optional[RuleDatabase] = None,
        top_k: int = DEFAULT_TOP_K,
    ):
        self.database = database
        self.rule_database = rule_database if rule_database is not None else RuleDatabase()
        self.top_k = top_k

    def tokenizer_rules(self) -> Tuple[TokenizerRule, ...]:
        return self.rule_database.all_tokenizer_rules() + self.database.token_regex_rules()

    def vectorize(self, code: str) -> Dict[str, float]:
        """Presence-tested token weights drawn from every loaded signature."""
        lower = code.lower()
        feats: Dict[str, float] = {}

        for sig in self.database.signatures:
            for token, weight in sig.tokens.items():
                if not token:
                    continue
                escaped = re.escape(token)
                rx = rf"\b{escaped}\b" if WORD_TOKEN.match(token) else escaped
                if pattern_matches(rx, lower):
                    feats[token] = feats.get(token, 0.0) + weight

        for rule in self.tokenizer_rules():
            if rule.rx and pattern_matches(rule.rx, lower):
                key = rule.name or rule.rx
                feats[key] = feats.get(key, 0.0) + rule.w

        return feats

    def severity(self, sig: VectorSignature, similarity: float) -> float:
        base = clamp01(sig.base_severity)
        return clamp01(base * min(1.0, max(0.0, similarity) ** SIMILARITY_EXPONENT * SIMILARITY_GAIN))

    def scan(self, code: str) -> EngineResult:
        if not len(self.database) or not code:
            return EngineResult(severity=0.0)

        code_vec = self.vectorize(code)
        results: List[SignatureMatch] = []
        for sig in self.database.signatures:
            sim = cosine_similarity(code_vec, sig.tokens)
            results.append(SignatureMatch(
                id=sig.id,
                title=sig.title,
                severity=self.severity(sig, sim),
                similarity=sim,
                notes=sig.notes,
            ))

        ranked = _top_k(results, len(results))
        return EngineResult(
            severity=probabilistic_or(r.severity for r in ranked[:self.top_k]),
            matches=tuple(r for r in ranked if r.similarity > REPORT_THRESHOLD)[:REPORT_LIMIT],
        )


def permission_risk(code: str) -> float:
    risk = 0.0
    if PROCESS_EXECUTION.search(code):
        risk += PROCESS_EXECUTION_RISK
    if FS_MUTATION.search(code):
        risk += FS_MUTATION_RISK
    if SECRET_ACCESS.search(code):
        risk += SECRET_ACCESS_RISK
    return clamp01(risk)


def library_reputation(code: str) -> float:
    if KNOWN_BAD_PACKAGE.search(code):
        return KNOWN_BAD_LIB_REPUTATION
    return DEFAULT_LIB_REPUTATION


def _label(source: Optional[str], fallback: str) -> str:
    return Path(source).name if source else fallback


class DependabilityScanner:
    """
    Combines both vulnerability engines with permission and library heuristics.

    The databases are injected once and never modified; an empty database
    contributes 0 and is reported through `warnings`.
    """

    def __init__(
        self,
        rule_database: Optional[RuleDatabase] = None,
        vector_database: Optional[VectorDatabase] = None,
        proximity_default_lines: int = DEFAULT_PROXIMITY_LINES,
        top_k: int = DEFAULT_TOP_K,
    ):
        self.rule_database = rule_database if rule_database is not None else RuleDatabase()
        self.vector_database = vector_database if vector_database is not None else VectorDatabase()
        self.regex_engine = RegexRuleEngine(self.rule_database, proximity_default_lines, top_k)
        self.vector_engine = VectorSimilarityEngine(self.vector_database, self.rule_database, top_k)

        warnings: List[str] = []
        if not len(self.rule_database):
            name = _label(self.rule_database.source, "regex rule database")
            warnings.append(f"{name} not loaded -> regex score = 0")
        if not len(self.vector_database):
            name = _label(self.vector_database.source, "vector signature database")
            warnings.append(f"{name} not loaded -> vector score = 0")
        for warning in warnings:
            logging.warning(f"[CVE] WARNING: {warning}")
        self.warnings: Tuple[str, ...] = tuple(warnings)

    def scan(self, code: str) -> DependabilitySignals:
        text = code if isinstance(code, str) else ""
        regex_result = self.regex_engine.scan(text)
        vector_result = self.vector_engine.scan(text)
        cve = probabilistic_or([regex_result.severity, vector_result.severity])

        reasons: List[str] = []
        reasons.extend(f"regex:{m.id} sev={m.severity:.2f}" for m in regex_result.matches)
        reasons.extend(
            f"vector:{m.id} sim={m.similarity:.2f} sev={m.severity:.2f}" for m in vector_result.matches
        )

        return DependabilitySignals(
            cve_severity=cve,
            regex_severity=regex_result.severity,
            vector_severity=vector_result.severity,
            lib_reputation=library_reputation(text),
            license_mismatch=False,
            perm_risk=permission_risk(text),
            reasons=tuple(reasons),
            warnings=self.warnings,
        )
