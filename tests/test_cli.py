"""CLI tests for offline matching against an exported reports file."""

import json
from pathlib import Path

import item_matcher.main as main_module
from conftest import FakeBackend
from typer.testing import CliRunner


def _write_reports(tmp_path: Path) -> Path:
    reports = [
        {
            "id": "F1",
            "description": "black leather wallet",
            "kind": "found",
            "reported_at": "2024-05-01T09:00:00",
            "category": "Accessories",
            "location": "Library",
        },
        {
            "id": "F2",
            "description": "red backpack",
            "kind": "found",
            "reported_at": "2024-05-01T10:00:00",
            "category": "Bags",
        },
        {
            "id": "L1",
            "description": "lost keys",
            "kind": "lost",
            "reported_at": "2024-05-02T08:30:00",
        },
    ]
    path = tmp_path / "reports.json"
    path.write_text(json.dumps(reports))
    return path


def test_match_prints_ranked_reports(tmp_path: Path, monkeypatch) -> None:
    backend = FakeBackend()
    monkeypatch.setattr(main_module, "EmbeddingProvider", lambda: backend)

    runner = CliRunner()
    result = runner.invoke(
        main_module.app,
        ["--items", str(_write_reports(tmp_path)), "--query", "lost a leather wallet"],
    )

    assert result.exit_code == 0
    assert "F1" in result.output
    assert "F2" not in result.output
    assert "L1" not in result.output


def test_match_without_results_exits_cleanly(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(main_module, "EmbeddingProvider", lambda: FakeBackend())

    runner = CliRunner()
    result = runner.invoke(
        main_module.app,
        ["--items", str(_write_reports(tmp_path)), "--query", "blue umbrella"],
    )

    assert result.exit_code == 0
    assert "No matching reports" in result.output


def test_provider_outage_exits_with_code_two(tmp_path: Path, monkeypatch) -> None:
    backend = FakeBackend(fail_on={"lost a leather wallet"})
    monkeypatch.setattr(main_module, "EmbeddingProvider", lambda: backend)

    runner = CliRunner()
    result = runner.invoke(
        main_module.app,
        ["--items", str(_write_reports(tmp_path)), "--query", "lost a leather wallet"],
    )

    assert result.exit_code == 2
    assert "Embedding provider unavailable" in result.output


def test_empty_query_exits_with_code_one(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(main_module, "EmbeddingProvider", lambda: FakeBackend())

    runner = CliRunner()
    result = runner.invoke(
        main_module.app,
        ["--items", str(_write_reports(tmp_path)), "--query", "   "],
    )

    assert result.exit_code == 1
    assert "Invalid request" in result.output


def test_invalid_reports_file_exits_with_code_one(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(main_module, "EmbeddingProvider", lambda: FakeBackend())
    path = tmp_path / "reports.json"
    path.write_text(json.dumps([{"id": "F1", "kind": "misplaced"}]))

    runner = CliRunner()
    result = runner.invoke(
        main_module.app,
        ["--items", str(path), "--query", "black wallet"],
    )

    assert result.exit_code == 1
    assert "Invalid reports file" in result.output


def test_reports_with_mixed_timestamp_formats_rank_cleanly(
    tmp_path: Path, monkeypatch
) -> None:
    monkeypatch.setattr(main_module, "EmbeddingProvider", lambda: FakeBackend())
    path = tmp_path / "reports.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "F1",
                    "description": "blue umbrella",
                    "kind": "found",
                    "reported_at": "2024-05-01T10:00:00",
                },
                {
                    "id": "F2",
                    "description": "blue umbrella",
                    "kind": "found",
                    "reported_at": "2024-05-01T09:00:00Z",
                },
            ]
        )
    )

    runner = CliRunner()
    result = runner.invoke(main_module.app, ["--items", str(path), "--query", "blue umbrella"])

    assert result.exit_code == 0
    assert result.output.index("F2") < result.output.index("F1")
