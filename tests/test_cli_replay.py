# tests/test_cli_replay.py
import json
import os
import sys

from click.testing import CliRunner

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))
from wallgraph_replay import StrokeScript, cli, replay

CROSS = {
    "strokes": [
        {"type": "layout", "points": [[0, 5], [10, 5]]},
        {"type": "zone", "points": [[5, 0], [5, 10]]},
    ]
}


def test_replay_resolves_crossing():
    report = replay(StrokeScript.model_validate(CROSS))
    assert report["summary"] == {"node_count": 5, "segment_count": 4, "wall_count": 2}
    assert len(report["intersections"]) == 1
    assert report["intersections"][0]["degree"] == 4
    assert [w["thickness"] for w in report["walls"]] == [350, 250]
    assert report["walls"][0]["connected_walls"] == [report["walls"][1]["id"]]
    assert report["merges"] == []
    assert report["errors"] == []


def test_replay_detects_near_walls():
    script = StrokeScript.model_validate({
        "strokes": [
            {"points": [[0, 0], [100, 0]]},
            {"points": [[0, 10], [100, 10]]},
        ]
    })
    report = replay(script)
    assert len(report["merges"]) == 1
    assert report["merges"][0]["merge_type"] == "parallel_overlap"
    assert replay(script, threshold=5)["merges"] == []


def test_cli_writes_report(tmp_path):
    src = tmp_path / "strokes.json"
    src.write_text(json.dumps(CROSS))
    out = tmp_path / "report.json"
    result = CliRunner().invoke(cli, ["--input", str(src), "--output", str(out)])
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text())
    assert data["summary"]["wall_count"] == 2


def test_cli_rejects_invalid_script(tmp_path):
    src = tmp_path / "bad.json"
    src.write_text(json.dumps({"strokes": [{"points": [[0, 0]]}]}))
    result = CliRunner().invoke(cli, ["--input", str(src)])
    assert result.exit_code != 0


def test_cli_rejects_invalid_config(tmp_path):
    src = tmp_path / "strokes.json"
    src.write_text(json.dumps(dict(CROSS, config={"proximity_threshold": -1})))
    result = CliRunner().invoke(cli, ["--input", str(src), "--output", str(tmp_path / "r.json")])
    assert result.exit_code == 1
    assert not (tmp_path / "r.json").exists()
