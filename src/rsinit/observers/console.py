# src/rsinit/observers/console.py
from .events import BaseEvent

_CONTEXT_KEYS = ("ts", "run_id", "instance", "replica_set")


class ConsoleObserver:
    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        k = event.__class__.__name__
        print(f"[{d['ts']}] {k} run={d['run_id']} instance={d['instance']} rs={d['replica_set']} data={{"
              + ", ".join(f"{x}={y}" for x, y in d.items() if x not in _CONTEXT_KEYS) + "}}")
