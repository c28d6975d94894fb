"""
Pattern-based resource cost estimators.

Every estimator here reads lexical cues only; nothing is executed and no
result is exact. Each one is a SignalExtractor so a stronger analyzer can be
dropped into ResourceScanner without touching the fusion layer.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .models import BigOClass

BIG_O_SEVERITY: Dict[BigOClass, float] = {
    BigOClass.CONSTANT: 0.05,
    BigOClass.LOGARITHMIC: 0.15,
    BigOClass.LINEAR: 0.20,
    BigOClass.LINEARITHMIC: 0.35,
    BigOClass.QUADRATIC: 0.70,
    BigOClass.CUBIC: 0.90,
    BigOClass.UNKNOWN: 0.50,
}

# --- Complexity cues ---
CC_KEYWORDS = re.compile(r"\b(?:if|case|catch|for|while|switch|try)\b")
CC_OPERATORS = re.compile(r"&&|\|\|")
LOOP_TOKENS = re.compile(r"\b(?:for|while|forEach)\b|\b(?:map|reduce)\(")
NESTED_LOOP = re.compile(r"\b(?:for|while)\s*\([^)]*\)\s*\{[^{}]*\b(?:for|while)\s*\(")
TRIPLE_NESTED_LOOP = re.compile(
    r"\b(?:for|while)\b[\s\S]{0,300}?\b(?:for|while)\b[\s\S]{0,300}?\b(?:for|while)\b"
)
SORT_USAGE = re.compile(r"\bsort\s*\(|\b(?:Collections|Arrays)\.sort\b")
NAMED_FUNCTION_HEADER = re.compile(r"function\s*\*?\s*(\w+)\s*\([^)]*\)[^{;]*\{")
ARROW_HEADER = re.compile(r"\b(\w+)\s*=\s*(?:async\s*)?\([^)]*\)[^=;{]*=>\s*")
EXPRESSION_BODY_END = re.compile(r"[;\n]")
DIVIDE_AND_CONQUER = re.compile(r"\b(?:mid|merge|partition|divide|conquer)\b", re.IGNORECASE)
NESTED_QUANTIFIER = re.compile(r"\([^()]*[+*]\)[+*{]|(?:\.\*){2,}")
DYNAMIC_REGEX = re.compile(r"new\s+RegExp|re\.compile")

# --- Memory cues ---
BUFFER_ALLOC = re.compile(r"Buffer\.alloc\s*\(\s*(\d+)\s*\)", re.IGNORECASE)
SIZED_ARRAY = re.compile(r"\bnew\s+Array\s*\(\s*(\d+)\s*\)|\bArray\s*\(\s*(\d+)\s*\)\.fill", re.IGNORECASE)
STRING_LITERAL = re.compile(r"([\"'`])(?:[^\"'`\\]|\\.){1,200}\1")
ARRAY_LITERAL = re.compile(r"\[([^\[\]]{0,400})\]")
OBJECT_LITERAL = re.compile(r"\{([^{}]{0,400})\}")
MAP_SET = re.compile(r"\bnew\s+(?:Map|Set)\s*\(")

SIZED_ARRAY_ELEMENT_BYTES = 8
ARRAY_LITERAL_ELEMENT_BYTES = 16
OBJECT_PROPERTY_BYTES = 24
MAP_SET_BYTES = 128

# --- External / IO cues ---
EXTERNAL_CALL = re.compile(
    r"\b(?:fetch|axios|request|http\.|https\.|jdbc|mongo|redis|sequelize|prisma)\b", re.IGNORECASE
)
IO_CALL = re.compile(
    r"\bfs\.(?:read|write|append|unlink|readdir|chmod|chown)|open\(|readFileSync|writeFileSync\b",
    re.IGNORECASE,
)


def map_big_o(big_o: BigOClass) -> float:
    """Severity weight in [0.05, 0.90] for a complexity class."""
    return BIG_O_SEVERITY.get(big_o, BIG_O_SEVERITY[BigOClass.UNKNOWN])


def _block_end(code: str, open_index: int) -> int:
    """Index of the brace closing the one at `open_index`, or the end of the text."""
    depth = 0
    for i in range(open_index, len(code)):
        ch = code[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return len(code)


def _function_bodies(code: str) -> List[Tuple[str, str]]:
    """(name, body) for every named function and arrow binding in `code`."""
    bodies: List[Tuple[str, str]] = []
    for m in NAMED_FUNCTION_HEADER.finditer(code):
        open_index = m.end() - 1
        bodies.append((m.group(1), code[open_index + 1:_block_end(code, open_index)]))
    for m in ARROW_HEADER.finditer(code):
        start = m.end()
        if code.startswith("{", start):
            bodies.append((m.group(1), code[start + 1:_block_end(code, start)]))
        else:
            # Expression body runs to the end of its statement
            end = EXPRESSION_BODY_END.search(code, start)
            bodies.append((m.group(1), code[start:end.start() if end else len(code)]))
    return bodies


def has_self_call(code: str) -> bool:
    """True when some function's own body calls the function by name."""
    return any(
        re.search(rf"\b{re.escape(name)}\s*\(", body)
        for name, body in _function_bodies(code)
    )


def classify_big_o(loop_depth: int, sort_hint: bool, divide_and_conquer: bool, recursion: bool) -> BigOClass:
    if loop_depth >= 3:
        return BigOClass.CUBIC
    if loop_depth == 2:
        return BigOClass.QUADRATIC
    if sort_hint or divide_and_conquer:
        return BigOClass.LINEARITHMIC
    if loop_depth == 1 or recursion:
        return BigOClass.LINEAR
    return BigOClass.UNKNOWN


@dataclass(frozen=True)
class ComplexitySignals:
    big_o: BigOClass = BigOClass.UNKNOWN
    cc: int = 1
    loop_count: int = 0
    loop_depth_approx: int = 0
    recursion: bool = False
    divide_and_conquer_hint: bool = False
    sort_hint: bool = False
    regex_dos_hint: bool = False
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MemorySignals:
    mem_allocs: int = 0
    mem_bytes_approx: int = 0
    details: Tuple[str, ...] = ()
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExternalCallSignals:
    external_calls: int = 0
    io_calls: int = 0
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResourceSignals:
    complexity: ComplexitySignals
    memory: MemorySignals
    external: ExternalCallSignals

    @property
    def reasons(self) -> Tuple[str, ...]:
        return self.complexity.reasons + self.memory.reasons + self.external.reasons


class SignalExtractor(ABC):
    """Uniform interface for an approximate signal extractor."""

    name: str = "signal"

    @abstractmethod
    def extract(self, code: str):
        """Return a frozen signals record for `code`; empty input yields neutral values."""


class AlgorithmComplexityExtractor(SignalExtractor):
    name = "complexity"

    def extract(self, code: str) -> ComplexitySignals:
        if not code:
            return ComplexitySignals()

        cc = 1 + len(CC_KEYWORDS.findall(code)) + len(CC_OPERATORS.findall(code))
        loop_count = len(LOOP_TOKENS.findall(code))
        if TRIPLE_NESTED_LOOP.search(code):
            loop_depth = 3
        elif NESTED_LOOP.search(code):
            loop_depth = 2
        else:
            loop_depth = 1 if loop_count > 0 else 0

        sort_hint = bool(SORT_USAGE.search(code))
        recursion = has_self_call(code)
        divide_and_conquer = recursion and bool(DIVIDE_AND_CONQUER.search(code))
        regex_dos = bool(NESTED_QUANTIFIER.search(code)) and bool(DYNAMIC_REGEX.search(code))

        reasons: List[str] = []
        if regex_dos:
            reasons.append("ReDoS pattern suspected")
        if divide_and_conquer:
            reasons.append("Divide-and-conquer recursion hint")
        if sort_hint:
            reasons.append("Sort usage hint")

        return ComplexitySignals(
            big_o=classify_big_o(loop_depth, sort_hint, divide_and_conquer, recursion),
            cc=cc,
            loop_count=loop_count,
            loop_depth_approx=loop_depth,
            recursion=recursion,
            divide_and_conquer_hint=divide_and_conquer,
            sort_hint=sort_hint,
            regex_dos_hint=regex_dos,
            reasons=tuple(reasons),
        )


class MemoryAllocationExtractor(SignalExtractor):
    """Rough allocation count and byte estimate from literal and constructor shapes."""

    name = "memory"

    def extract(self, code: str) -> MemorySignals:
        if not code:
            return MemorySignals()

        total = 0
        details: List[str] = []

        buffers = list(BUFFER_ALLOC.finditer(code))
        for m in buffers:
            size = int(m.group(1))
            total += size
            details.append(f"Buffer.alloc({size})")

        arrays = list(SIZED_ARRAY.finditer(code))
        for m in arrays:
            n = int(m.group(1) or m.group(2) or 0)
            total += n * SIZED_ARRAY_ELEMENT_BYTES
            details.append(f"Array({n}) allocation")

        for m in STRING_LITERAL.finditer(code):
            total += len(m.group(0))

        array_literals = list(ARRAY_LITERAL.finditer(code))
        for m in array_literals:
            elems = len(m.group(1).split(","))
            total += elems * ARRAY_LITERAL_ELEMENT_BYTES
            details.append(f"Array literal with ~{elems} elements")

        object_literals = list(OBJECT_LITERAL.finditer(code))
        for m in object_literals:
            props = m.group(1).count(":")
            total += props * OBJECT_PROPERTY_BYTES
            details.append(f"Object literal with ~{props} props")

        map_set = len(MAP_SET.findall(code))
        if map_set:
            total += map_set * MAP_SET_BYTES
            details.append(f"new Map/Set x{map_set}")

        allocs = len(buffers) + len(arrays) + len(array_literals) + len(object_literals) + map_set
        reasons: Tuple[str, ...] = ()
        if buffers or arrays:
            reasons = (f"Explicit allocations: {len(buffers)} buffer(s), {len(arrays)} sized array(s).",)

        return MemorySignals(
            mem_allocs=allocs,
            mem_bytes_approx=total,
            details=tuple(details),
            reasons=reasons,
        )


class ExternalCallExtractor(SignalExtractor):
    name = "external"

    def extract(self, code: str) -> ExternalCallSignals:
        if not code:
            return ExternalCallSignals()

        external_calls = len(EXTERNAL_CALL.findall(code))
        io_calls = len(IO_CALL.findall(code))

        reasons: List[str] = []
        if external_calls > 0:
            reasons.append(
                f"Detected {external_calls} external network/DB calls (fetch/axios/http*/DB client)."
            )
        if io_calls > 0:
            reasons.append(
                f"Detected {io_calls} file-system I/O calls (fs.*, readFileSync, writeFileSync, etc.)."
            )
        return ExternalCallSignals(external_calls=external_calls, io_calls=io_calls, reasons=tuple(reasons))


class ResourceScanner:
    """Runs the complexity, memory and external-call extractors over one snippet."""

    def __init__(
        self,
        complexity: Optional[SignalExtractor] = None,
        memory: Optional[SignalExtractor] = None,
        external: Optional[SignalExtractor] = None,
    ):
        self.complexity = complexity or AlgorithmComplexityExtractor()
        self.memory = memory or MemoryAllocationExtractor()
        self.external = external or ExternalCallExtractor()

    def scan(self, code: str) -> ResourceSignals:
        text = code if isinstance(code, str) else ""
        return ResourceSignals(
            complexity=self.complexity.extract(text),
            memory=self.memory.extract(text),
            external=self.external.extract(text),
        )
