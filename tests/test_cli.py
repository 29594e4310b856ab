"""Command line rendering."""

import json

import pytest

from rfp_builder.cli import load_answers, run_cli


def test_render_prints_document(tmp_path, capsys, sample_answers):
    path = tmp_path / "answers.json"
    path.write_text(json.dumps(sample_answers.to_dict(), ensure_ascii=False), encoding="utf-8")

    run_cli(["render", str(path)])

    assert capsys.readouterr().out.startswith("# 중고 거래 플랫폼 RFP (제안요청서)")


def test_render_to_file(tmp_path, sample_answers):
    source = tmp_path / "answers.json"
    source.write_text(json.dumps(sample_answers.to_dict(), ensure_ascii=False), encoding="utf-8")
    target = tmp_path / "out" / "rfp.md"

    run_cli(["render", str(source), "--output", str(target)])

    assert "## 14. 계약 체크리스트" in target.read_text(encoding="utf-8")


def test_session_snapshot_is_accepted(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"answers": {"overview": "앱"}}), encoding="utf-8")
    assert load_answers(path).overview == "앱"


def test_invalid_input_exits(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(SystemExit):
        load_answers(broken)
    with pytest.raises(SystemExit):
        load_answers(tmp_path / "missing.json")
