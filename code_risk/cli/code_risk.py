"""
Command line front end for the static risk scorer.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from code_risk.core.analyzer import RiskAnalyzer, language_from_path
from code_risk.core.config import CodeRiskConfig, load_config
from code_risk.core.models import RiskReport
from code_risk.core.signatures import compute_api_changes, extract_signatures
from code_risk.core.snippets import primary_snippet

MARKDOWN_SUFFIXES = {".md", ".markdown", ".txt"}


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def _resolve_config(args: argparse.Namespace) -> CodeRiskConfig:
    cli_overrides: Dict[str, Any] = {
        "rules_db_path": getattr(args, "rules_db", None),
        "vector_db_path": getattr(args, "vector_db", None),
        "output_format": getattr(args, "format", None),
        "wF": getattr(args, "wF", None),
        "wR": getattr(args, "wR", None),
        "wD": getattr(args, "wD", None),
    }
    return load_config(config_path=getattr(args, "config", None), cli_args=cli_overrides)


def _format_text(label: str, report: RiskReport) -> str:
    result = report.result
    f, r, d = report.vector.as_tuple()
    lines = [
        f"{label}: score={result.score:.2f} {result.severity.value.upper()} ({result.level}) - {result.action}",
        f"  F={f:.3f} R={r:.3f} D={d:.3f}",
    ]
    lines.extend(f"  - {reason}" for reason in report.reasons)
    return "\n".join(lines)


def _run_analyze(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    analyzer = RiskAnalyzer.from_config(config, strict=args.strict_db)
    previous_code = _read_text(args.previous) if args.previous else None

    outputs: List[Dict[str, Any]] = []
    texts: List[str] = []
    files = args.files
    for file_path in tqdm(files, desc="Scoring", unit="file", disable=len(files) < 2):
        text = _read_text(file_path)
        as_markdown = args.markdown or Path(file_path).suffix.lower() in MARKDOWN_SUFFIXES
        if as_markdown:
            snippet = primary_snippet(text, args.block)
            hinted_path = args.path or snippet.suggested
            language = snippet.language
            code = snippet.code
        else:
            hinted_path = args.path or file_path
            language = language_from_path(file_path) or config.language
            code = text

        report = analyzer.assess(code, hinted_path, language=language, previous_code=previous_code)
        logging.info(f"{file_path}: score={report.result.score:.2f} ({report.result.level})")

        if config.output_format == "text":
            texts.append(_format_text(file_path, report))
        else:
            entry = {"file": file_path, "hinted_path": hinted_path, "language": language}
            entry.update(report.to_dict())
            outputs.append(entry)

    if config.output_format == "text":
        print("\n\n".join(texts))
    else:
        payload = outputs[0] if len(outputs) == 1 else outputs
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def _run_signatures(args: argparse.Namespace) -> int:
    language = args.language or language_from_path(args.file)
    signatures = extract_signatures(_read_text(args.file), language)
    payload = [
        {"kind": sig.kind.value, "name": sig.name, "signature": sig.signature}
        for sig in signatures
    ]
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def _run_diff(args: argparse.Namespace) -> int:
    language = args.language or language_from_path(args.current)
    diff = compute_api_changes(_read_text(args.previous), _read_text(args.current), language)
    print(json.dumps(asdict(diff), indent=2))
    return 0


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to configuration YAML file (default: coderisk.config.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging on stderr.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="code-risk CLI: static Functionality/Resource/Dependability risk scoring for code snippets."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Score one or more code files or assistant replies")
    analyze.add_argument("files", nargs="+", help="Code files, or Markdown replies containing fenced code blocks.")
    _add_common_flags(analyze)
    analyze.add_argument("--markdown", action="store_true",
                         help="Treat every input as a Markdown reply (implied for .md/.markdown/.txt).")
    analyze.add_argument("--block", type=int, default=None,
                         help="Index of the fenced block to score (default: the last one; negative counts from the end).")
    analyze.add_argument("--path", help="Hinted destination path of the snippet (drives the core-module flag).")
    analyze.add_argument("--previous", help="Previous version of the file, enables real API and line diffing.")
    analyze.add_argument("--format", choices=["json", "text"], default=None,
                         help="Output format (overrides config, default: json).")
    analyze.add_argument("--rules-db", help="Regex rule database JSON (overrides config).")
    analyze.add_argument("--vector-db", help="Vector signature database JSON (overrides config).")
    analyze.add_argument("--wF", type=float, default=None, help="Functionality weight.")
    analyze.add_argument("--wR", type=float, default=None, help="Resource weight.")
    analyze.add_argument("--wD", type=float, default=None, help="Dependability weight.")
    analyze.add_argument("--strict-db", action="store_true",
                         help="Fail instead of scoring 0 when a signature database cannot be loaded.")
    analyze.set_defaults(func=_run_analyze)

    signatures = subparsers.add_parser("signatures", help="List API signatures declared in a file")
    signatures.add_argument("file", help="TypeScript/JavaScript source file.")
    signatures.add_argument("--language", help="Language hint, e.g. ts or tsx (default: from file suffix).")
    _add_common_flags(signatures)
    signatures.set_defaults(func=_run_signatures)

    diff = subparsers.add_parser("diff", help="Count API changes between two versions of a file")
    diff.add_argument("previous", help="Previous version.")
    diff.add_argument("current", help="Current version.")
    diff.add_argument("--language", help="Language hint, e.g. ts or tsx (default: from file suffix).")
    _add_common_flags(diff)
    diff.set_defaults(func=_run_diff)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the scorer."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except Exception as e:
        print(f"\n❌ An unexpected error occurred: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
