import json
from pathlib import Path

from rsinit.observers.dispatcher import EventBus
from rsinit.observers.events import PhaseStarted, PhaseSucceeded, new_ctx
from rsinit.observers.jsonfile import JsonFileObserver

from fakes import Capture


class Exploding:
    def notify(self, event):
        raise RuntimeError("boom")


def test_failing_observer_does_not_break_others():
    cap = Capture()
    bus = EventBus([Exploding(), cap])
    ctx = new_ctx(instance="localhost:27017", replica_set="rs0")

    bus.emit(PhaseStarted(phase="keyfile", **ctx))

    assert len(cap.events) == 1
    assert cap.events[0].phase == "keyfile"


def test_json_file_observer_appends_lines(tmp_path: Path):
    path = tmp_path / "events" / "run.jsonl"
    bus = EventBus([JsonFileObserver(path)])
    ctx = new_ctx(instance="localhost:27017", replica_set="rs0", run_id="run-1")

    bus.emit(PhaseStarted(phase="launch", **ctx))
    bus.emit(PhaseSucceeded(phase="launch", detail="pid=1", **ctx))

    lines = [json.loads(l) for l in path.read_text().splitlines()]
    assert [l["type"] for l in lines] == ["PhaseStarted", "PhaseSucceeded"]
    assert lines[1]["detail"] == "pid=1"
    assert {l["run_id"] for l in lines} == {"run-1"}
