from app.harvester import logging_utils, utils


def test_harvest_event_label_and_phase(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._harvest_event("state", phase="retry_decision", kind="capped")

    assert events
    line = events[-1]
    assert line.startswith("[HARVESTER][STATE]")
    assert "phase='retry_decision'" in line
    assert "kind='capped'" in line


def test_harvest_event_never_raises(monkeypatch):
    def _boom(msg):
        raise OSError("disk full")

    monkeypatch.setattr(logging_utils, "log_line", _boom)

    logging_utils._harvest_event("iteration", index=1)


def test_run_event_log_stamps_run_and_owner(monkeypatch):
    lines: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: lines.append(msg))

    events = logging_utils.RunEventLog("harvest-p1", "p1")
    events.event("iteration", index=2, total=10)
    events.warn("container missing", iteration=3)

    assert events.labels() == ["iteration", "warn"]
    _, fields = events.events[0]
    assert fields == {"index": 2, "total": 10, "run": "harvest-p1", "owner": "p1"}
    assert "run='harvest-p1'" in lines[0]
    assert lines[1].startswith("[HARVESTER][WARN]")
    assert "message='container missing'" in lines[1]


def test_run_logger_switches_files_without_stacking_handlers():
    first = utils.setup_run_logger()
    utils.log_line("first run line")
    second = utils.setup_run_logger()
    utils.log_line("second run line")

    assert utils.get_current_log_path() == second
    assert len(utils.LOGGER.handlers) == 2
    assert "second run line" in second.read_text(encoding="utf-8")
    assert "first run line" in first.read_text(encoding="utf-8")
