from __future__ import annotations

import pytest

from app.harvester import db, run_summary_cli


def test_run_summary_cli_prints_summary(capsys: pytest.CaptureFixture) -> None:
    db.initialize_schema()
    run_id = db.create_run(
        trigger="cli", owner_id="prod-1", source_url="https://priceoye.pk/p/1/reviews", params={}
    )
    db.finish_run(
        run_id,
        status="completed",
        reason="stalled",
        iterations=4,
        records=18,
        persisted=False,
        error_code="persist_failed",
    )

    assert run_summary_cli.main(["--run-id", str(run_id)]) == 0

    out = capsys.readouterr().out
    assert f"Run {run_id}" in out
    assert "reason: stalled" in out
    assert "records: 18" in out
    assert "persisted: False" in out
    assert "error_code: persist_failed" in out
    assert "error_message" not in out


def test_run_summary_cli_latest(capsys: pytest.CaptureFixture) -> None:
    db.initialize_schema()
    db.create_run(trigger="cli", owner_id="a", source_url=None, params={})
    latest = db.create_run(trigger="ui", owner_id="b", source_url=None, params={})

    assert run_summary_cli.main(["--latest"]) == 0

    assert f"Run {latest}" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["--run-id", "999"], ["--latest"]])
def test_run_summary_cli_errors_without_run(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_summary_cli.main(argv)

    assert excinfo.value.code == 2
