"""Static risk scoring for LLM-generated TypeScript/JavaScript snippets."""

__version__ = "0.1.0"
