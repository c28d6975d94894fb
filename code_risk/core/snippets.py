"""
Fenced code-block extraction from an assistant reply.

The last block of a reply is the one scored; a file name the reply suggests
("create src/core/user.ts", "file: app.ts") becomes the hinted path.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

FENCED_BLOCK = re.compile(r"```([\s\S]*?)```")
LANGUAGE_TAG = re.compile(r"^[A-Za-z0-9+#._-]{1,20}$")
FILE_HINT = re.compile(
    r"(?:\bfile\s*[:=]\s*|\bcreate\s+|\bmake\s+|\bsave\s*as\s+|파일(?:명|을)?\s*(?:은|을)?\s*)"
    r"([A-Za-z0-9_\-./]+)",
    re.IGNORECASE,
)
FILE_EXTENSION = re.compile(r"\.([A-Za-z0-9]{1,8})$")
VERSION_NUMBER = re.compile(r"^\d+(?:\.\d+)+$")


@dataclass(frozen=True)
class Snippet:
    language: str
    code: str
    suggested: Optional[str] = None


def detect_suggested_filename(text: str) -> Optional[str]:
    """Last file name the text asks to create or save, or None."""
    if not text:
        return None

    last = None
    for m in FILE_HINT.finditer(text):
        candidate = m.group(1).rstrip(".")
        if FILE_EXTENSION.search(candidate):
            last = candidate
    if last is None:
        return None

    ext = FILE_EXTENSION.search(last).group(1)
    if not re.search(r"[A-Za-z]", ext):
        return None
    if VERSION_NUMBER.match(last) or ".." in last:
        return None
    return last.lstrip("/")


def extract_code_blocks(text: str) -> List[Snippet]:
    """
    Every ``` fenced block in order of appearance.

    The first line of a block is its language tag when it looks like one;
    otherwise the block is 'plaintext' and keeps all of its lines.
    """
    blocks: List[Snippet] = []
    if not text:
        return blocks

    for m in FENCED_BLOCK.finditer(text):
        body = m.group(1)
        first, sep, rest = body.partition("\n")
        tag = first.strip()
        if sep and LANGUAGE_TAG.match(tag):
            blocks.append(Snippet(tag, rest, detect_suggested_filename(rest)))
        elif sep and not tag:
            blocks.append(Snippet("plaintext", rest, detect_suggested_filename(rest)))
        else:
            blocks.append(Snippet("plaintext", body, None))
    return blocks


def primary_snippet(text: str, block: Optional[int] = None) -> Snippet:
    """
    The block to score, with the reply-level file hint preferred.

    `block` indexes the fenced blocks (negative counts from the end); the last
    block is used when it is None. A reply without fenced blocks is treated as
    one plaintext snippet.

    Raises:
        IndexError: `block` does not name one of the reply's blocks.
    """
    blocks = extract_code_blocks(text)
    if not blocks:
        return Snippet("plaintext", text or "", detect_suggested_filename(text))
    if block is None:
        chosen = blocks[-1]
    elif -len(blocks) <= block < len(blocks):
        chosen = blocks[block]
    else:
        raise IndexError(f"block {block} out of range: reply has {len(blocks)} code block(s)")
    suggested = detect_suggested_filename(text) or chosen.suggested
    return Snippet(chosen.language, chosen.code, suggested)
