"""
Structural Functionality signals used when no call graph is available.
"""

import difflib
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional

CORE_SEGMENTS = {"core", "service", "domain"}

SQL_DDL = re.compile(r"\b(?:alter\s+table|create\s+table|drop\s+table|migration)\b", re.IGNORECASE)
TYPEORM_HINT = re.compile(
    r"@Entity\b|@Column\b|\bPrimaryGeneratedColumn\b|\bMigrationInterface\b", re.IGNORECASE
)
PRISMA_MODEL = re.compile(r"\bmodel\b[\s\S]+?\{[\s\S]*?\}", re.IGNORECASE)
PRISMA_MENTION = re.compile(r"prisma", re.IGNORECASE)
SEQUELIZE_HINT = re.compile(
    r"\bsequelize\.define\b|\bqueryInterface\.createTable\b|\bqueryInterface\.dropTable\b",
    re.IGNORECASE,
)

ESTIMATED_CHANGE_RATIO = 0.2
ESTIMATED_CHANGE_CAP = 200


@dataclass(frozen=True)
class SchemaChangeSignal:
    schema_changed: bool
    reason: str


def is_core_module(path: Optional[str]) -> bool:
    """True when a directory segment of `path` is core, service or domain."""
    if not path:
        return False
    parts = PurePosixPath(path.replace("\\", "/")).parts[:-1]
    return any(part.lower() in CORE_SEGMENTS for part in parts)


def detect_schema_change(code: str) -> SchemaChangeSignal:
    """Keyword-level detection of DDL and ORM schema/migration code."""
    if not code:
        return SchemaChangeSignal(False, "no schema change detected")

    ddl_hit = bool(SQL_DDL.search(code))
    typeorm_hit = bool(TYPEORM_HINT.search(code))
    prisma_hit = bool(PRISMA_MODEL.search(code)) and bool(PRISMA_MENTION.search(code))
    sequelize_hit = bool(SEQUELIZE_HINT.search(code))

    reasons: List[str] = []
    if ddl_hit:
        reasons.append("SQL DDL keyword (ALTER/CREATE/DROP TABLE/MIGRATION) detected")
    if typeorm_hit:
        reasons.append("TypeORM entity/migration pattern detected")
    if prisma_hit:
        reasons.append("Prisma schema-like model definition detected")
    if sequelize_hit:
        reasons.append("Sequelize migration/queryInterface pattern detected")

    if not reasons:
        return SchemaChangeSignal(False, "no schema change detected")
    return SchemaChangeSignal(True, "; ".join(reasons))


def count_lines(code: str) -> int:
    return code.count("\n") + 1 if code else 1


def estimate_changed_lines(code: str, previous_code: Optional[str] = None) -> int:
    """
    Lines touched by the change.

    Without a previous snapshot this is a fixed fraction of the snippet,
    capped; with one it counts inserted and replaced lines of a line diff.
    """
    if not code:
        return 0
    if previous_code is None:
        estimate = int(count_lines(code) * ESTIMATED_CHANGE_RATIO + 0.5)
        return min(ESTIMATED_CHANGE_CAP, estimate)

    matcher = difflib.SequenceMatcher(a=previous_code.splitlines(), b=code.splitlines(), autojunk=False)
    changed = 0
    for tag, _i1, _i2, j1, j2 in matcher.get_opcodes():
        if tag in ("replace", "insert"):
            changed += j2 - j1
    return changed
