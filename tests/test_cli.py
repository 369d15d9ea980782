import json

import pytest

import hyperbez.__main__ as cli


def _write_chain(tmp_path, points, closed=False):
    path = tmp_path / "chain.json"
    path.write_text(json.dumps({"closed": closed, "points": points}), encoding="utf-8")
    return path


def test_main_prints_segments_and_writes_svg(tmp_path, capsys):
    path = _write_chain(
        tmp_path,
        [
            {"x": 0.0, "y": 0.0, "right": {"angle": 0.4636476090008061}},
            {"x": 1.0, "y": 0.5},
            {"x": 2.0, "y": 0.0, "left": {"angle": -0.4636476090008061}},
        ],
    )
    svg_path = tmp_path / "out.svg"

    cli.main([str(path), "--svg", str(svg_path), "--samples", "8"])

    out = capsys.readouterr().out
    assert "solved 3 points" in out
    assert "segment 0:" in out and "segment 1:" in out
    assert "joint 1:" in out
    svg = svg_path.read_text()
    assert svg.startswith("<svg")
    assert svg.count("<polyline") == 2


def test_main_accepts_end_condition(tmp_path, capsys):
    path = _write_chain(tmp_path, [[0, 0], [1, 0.4], [2, 0.1]])

    cli.main([str(path), "--end-condition", "constant", "--max-iterations", "60"])

    assert "segment 1:" in capsys.readouterr().out


def test_main_exits_on_invalid_chain(tmp_path):
    path = _write_chain(tmp_path, [[0, 0], [0, 0]])

    with pytest.raises(SystemExit) as excinfo:
        cli.main([str(path)])
    assert excinfo.value.code == 1
