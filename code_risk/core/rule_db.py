"""
Vulnerability signature databases and their on-disk loader.

Two document shapes are supported:

* regex form: ``{"signatures": [...], "tokenizer_rules": [...]}``
* vector form: ``[{"id", "title", "tokens": {token: weight}, "baseSeverity", "notes"}, ...]``

Databases are loaded once, validated into frozen models and then handed to
the scanners as read-only handles. A missing or empty file yields an empty
database rather than an error.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union, get_args

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator, model_validator

from .errors import DatabaseLoadError

DEFAULT_BASE_SEVERITY = 0.7

M = TypeVar("M", bound=BaseModel)


class _Frozen(BaseModel):
    class Config:
        frozen = True
        populate_by_name = True
        extra = "ignore"

    @model_validator(mode="before")
    @classmethod
    def _null_means_default(cls, data: Any) -> Any:
        # Explicit nulls fall back to the field default
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class _HasEntries(_Frozen):
    @field_validator("rules", "cooccur", "proximity", "negatives", "tokenizer_rules", "token_regex",
                     mode="before", check_fields=False)
    @classmethod
    def _drop_malformed_entries(cls, value: Any, info: ValidationInfo) -> Tuple[Any, ...]:
        entry_model = get_args(cls.model_fields[info.field_name].annotation)[0]
        return tuple(_validate_items(entry_model, value, f"{cls.__name__}.{info.field_name}"))


class TokenizerRule(_Frozen):
    name: Optional[str] = None
    rx: str
    w: float = 1.0


class Rule(_Frozen):
    rx: str
    w: float = 1.0
    note: Optional[str] = None
    token: Optional[str] = None
    support: Optional[float] = None
    idf: float = 1.0


class CooccurRule(_Frozen):
    patterns: Tuple[str, ...] = Field(default=(), alias="all")
    bonus: float = 0.0


class ProximityRule(_Frozen):
    a: str
    b: str
    lines: Optional[int] = None
    bonus: float = 0.0


class NegativeRule(_Frozen):
    rx: str
    penalty: float = 0.0
    note: Optional[str] = None


class RuleSignature(_HasEntries):
    id: str
    title: str = ""
    base_severity: float = Field(default=DEFAULT_BASE_SEVERITY, alias="baseSeverity")
    rules: Tuple[Rule, ...] = ()
    cooccur: Tuple[CooccurRule, ...] = ()
    proximity: Tuple[ProximityRule, ...] = ()
    negatives: Tuple[NegativeRule, ...] = ()
    group: Optional[str] = None
    support_docs: float = 0.0
    tokenizer_rules: Tuple[TokenizerRule, ...] = ()


class VectorSignature(_HasEntries):
    id: str
    title: str = ""
    tokens: Dict[str, float] = Field(default_factory=dict)
    base_severity: float = Field(default=DEFAULT_BASE_SEVERITY, alias="baseSeverity")
    notes: str = ""
    token_regex: Tuple[TokenizerRule, ...] = ()

    @field_validator("tokens", mode="before")
    @classmethod
    def _numeric_weights(cls, value: Any) -> Dict[str, float]:
        if not isinstance(value, dict):
            return {}
        # Non-numeric weights count as presence tokens of weight 1
        return {
            str(token): float(weight) if isinstance(weight, (int, float)) and not isinstance(weight, bool) else 1.0
            for token, weight in value.items()
        }


class RuleDatabase(_Frozen):
    signatures: Tuple[RuleSignature, ...] = ()
    tokenizer_rules: Tuple[TokenizerRule, ...] = ()
    source: Optional[str] = None

    def __len__(self) -> int:
        return len(self.signatures)

    def all_tokenizer_rules(self) -> Tuple[TokenizerRule, ...]:
        """Shared rules followed by every signature's own tokenizer rules."""
        rules: List[TokenizerRule] = list(self.tokenizer_rules)
        for sig in self.signatures:
            rules.extend(sig.tokenizer_rules)
        return tuple(rules)


class VectorDatabase(_Frozen):
    signatures: Tuple[VectorSignature, ...] = ()
    source: Optional[str] = None

    def __len__(self) -> int:
        return len(self.signatures)

    def token_regex_rules(self) -> Tuple[TokenizerRule, ...]:
        rules: List[TokenizerRule] = []
        for sig in self.signatures:
            rules.extend(sig.token_regex)
        return tuple(rules)


def _validate_items(model: Type[M], items: Any, source: str) -> List[M]:
    """Validate each entry on its own so one bad entry does not drop the rest."""
    if not isinstance(items, (list, tuple)):
        return []
    valid: List[M] = []
    for position, item in enumerate(items):
        try:
            valid.append(model.model_validate(item))
        except ValidationError as e:
            logging.warning(f"Skipping malformed entry #{position} in {source}: {e.error_count()} error(s)")
    return valid


def _read_json(path: Path, strict: bool) -> Any:
    if not path.exists() or not path.is_file():
        if strict:
            raise DatabaseLoadError(f"Signature database not found: {path}")
        logging.warning(f"[CVE] WARNING: {path.name} not found. Scoring from it -> 0")
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        if strict:
            raise DatabaseLoadError(f"Could not read signature database {path}: {e}") from e
        logging.warning(f"[CVE] WARNING: failed to load {path}: {e}")
        return None


def rule_database_from_document(document: Any, source: str = "<memory>") -> RuleDatabase:
    if not isinstance(document, dict):
        return RuleDatabase(source=source)
    signatures = _validate_items(RuleSignature, document.get("signatures"), source)
    tokenizer_rules = _validate_items(TokenizerRule, document.get("tokenizer_rules"), source)
    return RuleDatabase(signatures=tuple(signatures), tokenizer_rules=tuple(tokenizer_rules), source=source)


def vector_database_from_document(document: Any, source: str = "<memory>") -> VectorDatabase:
    signatures = _validate_items(VectorSignature, document, source)
    return VectorDatabase(signatures=tuple(signatures), source=source)


def load_rule_database(path: Union[str, Path], strict: bool = False) -> RuleDatabase:
    """Load the regex-rule document; absent or unreadable files yield an empty database."""
    path = Path(path)
    db = rule_database_from_document(_read_json(path, strict), source=str(path))
    if len(db):
        logging.info(f"[CVE] Loaded RULE DB: {len(db)} signature(s) from {path}")
    return db


def load_vector_database(path: Union[str, Path], strict: bool = False) -> VectorDatabase:
    """Load the vector-signature document; absent or unreadable files yield an empty database."""
    path = Path(path)
    db = vector_database_from_document(_read_json(path, strict), source=str(path))
    if len(db):
        logging.info(f"[CVE] Loaded VECTOR DB: {len(db)} signature(s) from {path}")
    return db
