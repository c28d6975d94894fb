"""Exceptions surfaced to callers of the risk pipeline."""


class CodeRiskError(Exception):
    """Base class for code-risk errors."""


class DatabaseLoadError(CodeRiskError):
    """A signature database could not be read and the caller asked for strict loading."""


class AnalysisError(CodeRiskError):
    """No metrics at all could be produced for a snippet."""
