import json

import pytest

from code_risk.cli.code_risk import build_parser, main

HANDLER = '''
export function handler(req) {
    return helper(req.query.id);
}

function helper(id) {
    return eval(id);
}
'''


def _run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_parser_requires_a_subcommand():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_analyze_code_file_prints_json_report(workspace, db_files, capsys):
    rules_path, vectors_path = db_files
    source = workspace / "src" / "core" / "handler.ts"
    source.parent.mkdir(parents=True)
    source.write_text(HANDLER, encoding="utf-8")

    code = _run(["analyze", str(source), "--rules-db", str(rules_path), "--vector-db", str(vectors_path)])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["file"] == str(source)
    assert report["language"] == "ts"
    assert report["metrics"]["core_touched"] is True
    assert report["metrics"]["cve_severity"] > 0
    assert 0 <= report["score"] <= 10
    assert report["severity"] in {"green", "yellow", "orange", "red"}


def test_analyze_without_databases_reports_warnings(workspace, capsys):
    source = workspace / "app.ts"
    source.write_text(HANDLER, encoding="utf-8")

    assert _run(["analyze", str(source)]) == 0

    report = json.loads(capsys.readouterr().out)
    warnings = [r for r in report["reasons"] if r.startswith("warn:")]
    assert len(warnings) == 2
    assert report["metrics"]["cve_severity"] == 0


def test_strict_db_fails_on_missing_database(workspace, capsys):
    source = workspace / "app.ts"
    source.write_text(HANDLER, encoding="utf-8")

    assert _run(["analyze", str(source), "--strict-db"]) == 1
    assert "Signature database not found" in capsys.readouterr().err


def test_analyze_markdown_reply_uses_suggested_path(workspace, capsys):
    reply = workspace / "reply.md"
    reply.write_text(
        "Create src/domain/order.ts:\n\n```ts\n" + HANDLER + "```\n",
        encoding="utf-8",
    )

    assert _run(["analyze", str(reply)]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["hinted_path"] == "src/domain/order.ts"
    assert report["language"] == "ts"
    assert report["metrics"]["core_touched"] is True


def test_block_selection_out_of_range_fails(workspace):
    reply = workspace / "reply.md"
    reply.write_text("```ts\nconst a = 1;\n```\n", encoding="utf-8")

    assert _run(["analyze", str(reply), "--block", "3"]) == 1


def test_multiple_files_and_text_format(workspace, capsys):
    first = workspace / "a.ts"
    second = workspace / "b.js"
    first.write_text(HANDLER, encoding="utf-8")
    second.write_text("const x = () => 1;\n", encoding="utf-8")

    assert _run(["analyze", str(first), str(second), "--format", "text", "--wD", "0.5"]) == 0

    out = capsys.readouterr().out
    assert out.startswith(f"{first}: score=")
    assert f"{second}: score=" in out
    assert "F=" in out


def test_multiple_files_json_is_a_list(workspace, capsys):
    first = workspace / "a.ts"
    second = workspace / "b.ts"
    first.write_text(HANDLER, encoding="utf-8")
    second.write_text(HANDLER, encoding="utf-8")

    assert _run(["analyze", str(first), str(second)]) == 0

    reports = json.loads(capsys.readouterr().out)
    assert [r["file"] for r in reports] == [str(first), str(second)]


def test_previous_version_enables_real_diffing(workspace, capsys):
    source = workspace / "app.ts"
    source.write_text(HANDLER, encoding="utf-8")

    assert _run(["analyze", str(source), "--previous", str(source)]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["metrics"]["api_changes"] == 0
    assert report["metrics"]["semantic_f"]["score"] == 0.0


def test_signatures_command(workspace, capsys):
    source = workspace / "app.ts"
    source.write_text(HANDLER, encoding="utf-8")

    assert _run(["signatures", str(source)]) == 0

    sigs = json.loads(capsys.readouterr().out)
    assert [(s["kind"], s["name"]) for s in sigs] == [("function", "handler"), ("function", "helper")]


def test_diff_command(workspace, capsys):
    prev = workspace / "prev.ts"
    cur = workspace / "cur.ts"
    prev.write_text("export function a() {}\nexport function b() {}\n", encoding="utf-8")
    cur.write_text("export function a(x) {}\nexport function c() {}\n", encoding="utf-8")

    assert _run(["diff", str(prev), str(cur)]) == 0

    diff = json.loads(capsys.readouterr().out)
    assert diff == {"added": 1, "removed": 1, "changed": 1, "api_changes": 3, "total_apis": 2}


def test_missing_input_file_exits_with_error(workspace, capsys):
    assert _run(["signatures", str(workspace / "missing.ts")]) == 1
    assert "An unexpected error occurred" in capsys.readouterr().err
