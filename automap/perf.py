"""Stage timing for a build, written out as JSONL.

Usage:
    from automap.perf import perf

    perf.start()
    perf.stage("scripts")
    with perf.timer("run_scripts", wad="raw_map.wad"):
        run_scripts(...)

    perf.finish()
    perf.summary()       # per-stage table on the console
    perf.save("runs")    # writes runs/YYYYMMDD_HHMMSS.jsonl

Each stage is one record whose duration is filled in when the next stage
starts or the build finishes. Timed steps inside a stage are records of
their own.
"""

import json
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from automap.config import console

STAGE = "stage"


@dataclass
class Timing:
    stage: str
    step: str
    offset_s: float              # seconds since start()
    duration_ms: float = 0.0
    error: str | None = None
    meta: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_row(self) -> dict:
        row = {
            "stage": self.stage,
            "step": self.step,
            "offset_s": round(self.offset_s, 3),
            "duration_ms": round(self.duration_ms, 2),
            "ok": self.ok,
            **self.meta,
        }
        if self.error:
            row["error"] = self.error
        return row


class PerfLogger:
    def __init__(self):
        self.start()

    def start(self):
        self._t0 = time.time()
        self._rows: list[Timing] = []
        self._open: Timing | None = None

    def _now(self) -> float:
        return time.time() - self._t0

    def _close(self):
        if self._open is not None:
            self._open.duration_ms = (self._now() - self._open.offset_s) * 1000
            self._open = None

    def stage(self, name: str):
        """Close the running stage, if any, and open *name*."""
        self._close()
        self._open = Timing(stage=name, step=STAGE, offset_s=self._now())
        self._rows.append(self._open)

    @contextmanager
    def timer(self, step: str, **meta):
        """Time a block inside the current stage. Failures are recorded and re-raised."""
        row = Timing(stage=self._open.stage if self._open else "",
                     step=step, offset_s=self._now(), meta=meta)
        self._rows.append(row)
        try:
            yield
        except Exception as e:
            row.error = f"{type(e).__name__}: {e}"
            raise
        finally:
            row.duration_ms = (self._now() - row.offset_s) * 1000

    def finish(self):
        self._close()

    def stages(self) -> dict[str, float]:
        """Stage name -> duration in ms. A stage still running reports 0."""
        return {r.stage: r.duration_ms for r in self._rows if r.step == STAGE}

    def summary(self):
        stages = self.stages()
        total = sum(stages.values())
        console.print(f"\n{'─' * 50}")
        for name, dur in stages.items():
            pct = dur / total * 100 if total > 0 else 0.0
            console.print(f"  {name:<24s} {dur / 1000:>7.2f}s  ({pct:>4.1f}%)")
        console.print(f"  {'TOTAL':<24s} {total / 1000:>7.2f}s")

        failed = [r for r in self._rows if not r.ok]
        for r in failed:
            console.print(f"  failed [{r.stage}] {r.step}: {r.error}", markup=False)
        console.print(f"{'─' * 50}")

    def save(self, directory: str = "runs") -> str:
        """Write one JSON row per stage or step. Returns the file path."""
        Path(directory).mkdir(parents=True, exist_ok=True)
        ts = time.strftime("%Y%m%d_%H%M%S", time.localtime(self._t0))
        path = os.path.join(directory, f"{ts}.jsonl")
        with open(path, "w") as f:
            for row in self._rows:
                f.write(json.dumps(row.as_row()) + "\n")
        return path


# Module-level singleton
perf = PerfLogger()
