"""Tests for the moodle-tutor console script."""

import json

import pytest
from typer.testing import CliRunner

from conftest import HIGH_CLUSTER, LOW_CLUSTER
from moodle_tutor.analytics import StudentScore
from moodle_tutor.cli import app, read_scores

runner = CliRunner()


@pytest.fixture
def scores_csv(tmp_path):
    path = tmp_path / "scores.csv"
    rows = ["student_id,score"] + [f"{i},{s}" for i, s in enumerate(LOW_CLUSTER + HIGH_CLUSTER, start=1)]
    path.write_text("\n".join(rows) + "\n", encoding="utf-8")
    return path


def test_read_csv(scores_csv):
    records = read_scores(scores_csv)
    assert len(records) == 50
    assert records[0] == StudentScore(1, 0.0)


def test_read_json(tmp_path):
    path = tmp_path / "scores.json"
    path.write_text(json.dumps([{"studentId": 3, "score": 71}]), encoding="utf-8")
    assert read_scores(path) == [StudentScore(3, 71.0)]


def test_read_json_requires_list(tmp_path):
    path = tmp_path / "scores.json"
    path.write_text(json.dumps({"score": 71}), encoding="utf-8")
    with pytest.raises(ValueError):
        read_scores(path)


def test_analyze_prints_report(scores_csv):
    result = runner.invoke(app, ["analyze", str(scores_csv)])

    assert result.exit_code == 0, result.output
    assert "Distribution: bimodal" in result.output
    assert "split_two_tracks" in result.output


def test_analyze_json(scores_csv):
    result = runner.invoke(app, ["analyze", str(scores_csv), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["assessment"]["distribution"]["type"] == "bimodal"
    assert data["strategy"]["type"] == "split_two_tracks"
    assert data["outliers"] == []


def test_analyze_with_threshold_config(scores_csv, tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text("thresholds:\n  bimodal_separation: 3.0\n", encoding="utf-8")

    result = runner.invoke(app, ["analyze", str(scores_csv), "--config", str(config), "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["assessment"]["distribution"]["type"] == "normal"


def test_analyze_invalid_file(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("id,value\n1,50\n", encoding="utf-8")

    result = runner.invoke(app, ["analyze", str(path)])

    assert result.exit_code == 1


def test_serve_requires_credentials(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MOODLE_API_URL", raising=False)
    monkeypatch.delenv("MOODLE_API_TOKEN", raising=False)

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 1
