import pytest

from code_risk.core.snippets import Snippet, detect_suggested_filename, extract_code_blocks, primary_snippet

REPLY = """Create src/core/user.service.ts with the following:

```ts
export function getUser(id: string) {
    return db.find(id);
}
```

Then run it:

```
npm test
```
"""


def test_extracts_blocks_with_language_tags():
    blocks = extract_code_blocks(REPLY)

    assert len(blocks) == 2
    assert blocks[0].language == "ts"
    assert blocks[0].code.startswith("export function getUser")
    assert blocks[1] == Snippet("plaintext", "npm test\n", None)


def test_block_without_newline_keeps_its_body():
    blocks = extract_code_blocks("inline ```x = 1``` here")
    assert blocks == [Snippet("plaintext", "x = 1", None)]


def test_first_line_that_is_not_a_tag_stays_in_the_code():
    blocks = extract_code_blocks("```const a = 1;\nconst b = 2;\n```")
    assert blocks[0].language == "plaintext"
    assert blocks[0].code == "const a = 1;\nconst b = 2;\n"


def test_no_blocks():
    assert extract_code_blocks("just prose") == []
    assert extract_code_blocks("") == []


def test_detects_suggested_filename():
    assert detect_suggested_filename(REPLY) == "src/core/user.service.ts"
    assert detect_suggested_filename("file: app.ts.") == "app.ts"
    assert detect_suggested_filename("Save as /lib/util.js") == "lib/util.js"


def test_last_suggestion_wins():
    text = "Create a.ts first, then make b/c.tsx"
    assert detect_suggested_filename(text) == "b/c.tsx"


def test_rejects_unsafe_or_non_file_suggestions():
    assert detect_suggested_filename("create a helper") is None
    assert detect_suggested_filename("make 1.2.3 the version") is None
    assert detect_suggested_filename("save as ../etc/passwd.txt") is None
    assert detect_suggested_filename("") is None


def test_primary_snippet_is_the_last_block_with_reply_level_hint():
    text = "file: src/domain/order.ts\n```ts\nconst a = () => 1;\n```\n```js\nconst b = () => 2;\n```"
    snippet = primary_snippet(text)

    assert snippet.language == "js"
    assert snippet.code == "const b = () => 2;\n"
    assert snippet.suggested == "src/domain/order.ts"


def test_primary_snippet_without_blocks_is_the_whole_text():
    snippet = primary_snippet("function f() {}")
    assert snippet == Snippet("plaintext", "function f() {}", None)


def test_primary_snippet_block_index_selects_a_block():
    text = "```ts\nconst a = () => 1;\n```\n```js\nconst b = () => 2;\n```"

    assert primary_snippet(text, 0).language == "ts"
    assert primary_snippet(text, -2).code == "const a = () => 1;\n"
    assert primary_snippet(text, 1).language == "js"


def test_primary_snippet_block_index_out_of_range():
    with pytest.raises(IndexError):
        primary_snippet("```ts\nconst a = 1;\n```", 1)
