"""
Pytest configuration and shared fixtures for code-risk tests.
"""

import json
from pathlib import Path

import pytest

from code_risk.core.dependability import DependabilityScanner
from code_risk.core.rule_db import rule_database_from_document, vector_database_from_document


RULE_DOCUMENT = {
    "signatures": [
        {
            "id": "CVE-2021-0001",
            "title": "eval of request input",
            "baseSeverity": 0.9,
            "rules": [
                {"rx": r"\beval\s*\(", "w": 1.0, "token": "eval"},
                {"rx": r"req\.query", "w": 0.5},
            ],
            "cooccur": [{"all": [r"eval", r"req\.query"], "bonus": 0.5}],
            "proximity": [{"a": r"req\.query", "b": r"eval\(", "lines": 2, "bonus": 0.3}],
            "negatives": [{"rx": r"sanitize\(", "penalty": 1.0}],
        },
        {
            "id": "CVE-2020-0002",
            "title": "shell execution",
            "rules": [{"rx": r"child_process", "w": 0.8}],
        },
        {
            "id": "CVE-2019-0003",
            "title": "timer with string body",
            "rules": [
                {"rx": "([unclosed", "w": 5.0},
                {"rx": r"settimeout", "w": 0.4},
            ],
        },
    ],
    "tokenizer_rules": [{"name": "dyn_exec", "rx": r"new\s+function\s*\(", "w": 1.0}],
}

VECTOR_DOCUMENT = [
    {
        "id": "VEC-PROTO",
        "title": "prototype pollution",
        "tokens": {"__proto__": 2.0, "merge": 1.0, "constructor": "presence"},
        "baseSeverity": 0.8,
        "notes": "deep merge into object prototype",
    },
    {
        "id": "VEC-SSRF",
        "title": "server side request forgery",
        "tokens": {"fetch": 1.0, "url": 1.0},
    },
]


@pytest.fixture
def rule_document():
    return json.loads(json.dumps(RULE_DOCUMENT))


@pytest.fixture
def vector_document():
    return json.loads(json.dumps(VECTOR_DOCUMENT))


@pytest.fixture
def rule_db(rule_document):
    return rule_database_from_document(rule_document, source="rules.json")


@pytest.fixture
def vector_db(vector_document):
    return vector_database_from_document(vector_document, source="vectors.json")


@pytest.fixture
def scanner(rule_db, vector_db):
    """DependabilityScanner over the fixture databases."""
    return DependabilityScanner(rule_database=rule_db, vector_database=vector_db)


@pytest.fixture
def db_files(tmp_path: Path, rule_document, vector_document):
    """Both fixture databases written to disk; returns (rules_path, vectors_path)."""
    rules_path = tmp_path / "generated_cve_rules.json"
    vectors_path = tmp_path / "generated_cve_db.json"
    rules_path.write_text(json.dumps(rule_document), encoding="utf-8")
    vectors_path.write_text(json.dumps(vector_document), encoding="utf-8")
    return rules_path, vectors_path


@pytest.fixture
def sample_typescript_code():
    """Small service module: one exported handler calling through two helpers."""
    return '''
export function handler(req: Request): string {
    return helper(req);
}

function helper(x: Request): string {
    return format(x);
}

const format = (x: Request): string => x.toString();

function unused(): number {
    return 1;
}
'''


@pytest.fixture
def sample_express_code():
    return '''
import express from 'express';

const app = express();

function listUsers(req, res) {
    res.json(loadUsers());
}

function loadUsers() {
    return [];
}

app.get('/users', listUsers);
'''
