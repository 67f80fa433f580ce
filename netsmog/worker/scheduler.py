"""Per-target probe loops.

Each assigned target gets its own thread running::

    IDLE -> WAITING(interval) -> PROBING(count) -> REPORTING -> WAITING -> ...

until the shared stop event is set. Targets share no mutable state, so the
loops need no locking between them.
"""

from __future__ import annotations

import enum
import threading
from typing import Callable, Dict, List, Optional, Protocol

from netsmog.catalogue.model import PING, Catalogue, Target
from netsmog.errors import NetsmogError
from netsmog.util.logging import TargetLogger, get_logger, log_exception
from netsmog.worker.client import ResultBatch

logger = get_logger(__name__)

# Share of the interval the probes of one cycle may spend waiting for replies.
DEADLINE_FRACTION = 0.5
MIN_PROBE_TIMEOUT = 0.05
DEFAULT_MAX_PROBE_TIMEOUT = 2.0

Submitter = Callable[[ResultBatch], None]


class Prober(Protocol):
    def probe(self, host: str, timeout: Optional[float] = None) -> float: ...


class LoopState(str, enum.Enum):
    IDLE = "idle"
    WAITING = "waiting"
    PROBING = "probing"
    REPORTING = "reporting"
    STOPPED = "stopped"


def probe_deadline(interval: float, count: int, cap: float = DEFAULT_MAX_PROBE_TIMEOUT) -> float:
    """Read deadline for one probe so a whole cycle fits in its interval."""
    share = interval * DEADLINE_FRACTION / max(count, 1)
    return max(MIN_PROBE_TIMEOUT, min(cap, share))


class TargetLoop:
    """Probe one (group, target) pair forever and report every cycle."""

    def __init__(
        self,
        group: str,
        name: str,
        target: Target,
        prober: Prober,
        submit: Submitter,
        stop_event: threading.Event,
        *,
        max_probe_timeout: float = DEFAULT_MAX_PROBE_TIMEOUT,
    ) -> None:
        self.group = group
        self.name = name
        self.target = target
        self.prober = prober
        self.submit = submit
        self.stop_event = stop_event
        self.timeout = probe_deadline(target.interval, target.count, max_probe_timeout)
        self.state = LoopState.IDLE
        self.cycles = 0
        self.dropped = 0
        self.log = TargetLogger(logger, group, name, target.host)

    @property
    def series(self) -> str:
        return f"{self.group}.{self.name}"

    def probe_cycle(self) -> Optional[List[Optional[float]]]:
        """Run ``count`` probes in sequence; None if stopped part way."""
        self.state = LoopState.PROBING
        samples: List[Optional[float]] = []
        for n in range(1, self.target.count + 1):
            if self.stop_event.is_set():
                return None
            self.log.debug("PROBE %s (%d/%d): %s", self.target.probe, n, self.target.count, self.target.host)
            try:
                rtt = self.prober.probe(self.target.host, timeout=self.timeout)
            except NetsmogError as exc:
                self.log.info("%s probe %d/%d failed: %s", self.series, n, self.target.count, exc)
                samples.append(None)
                continue
            samples.append(round(rtt * 1000.0, 3))
        return samples

    def report(self, samples: List[Optional[float]]) -> bool:
        """Submit one cycle. A failed submission is logged and the cycle dropped."""
        self.state = LoopState.REPORTING
        batch: ResultBatch = {self.group: {self.name: samples}}
        self.log.debug("submitting results for %s", self.series)
        try:
            self.submit(batch)
        except NetsmogError as exc:
            # TODO: spool failed batches to disk and retry with backoff instead of dropping them.
            self.dropped += 1
            self.log.warning("%s: error sending results: %s", self.series, exc, extra={"error_type": "submit"})
            return False
        return True

    def run_once(self) -> bool:
        """One PROBING + REPORTING pass. Returns True if results were accepted."""
        samples = self.probe_cycle()
        if samples is None:
            return False
        self.cycles += 1
        return self.report(samples)

    def run(self) -> None:
        self.log.info(
            "launching %d %s probes every %gs against %s (%s)",
            self.target.count, self.target.probe, self.target.interval, self.target.host, self.series,
        )
        try:
            while True:
                self.state = LoopState.WAITING
                if self.stop_event.wait(self.target.interval):
                    break
                try:
                    self.run_once()
                except Exception:
                    log_exception(self.log, f"{self.series}: probe cycle crashed", error_type="cycle")
        finally:
            self.state = LoopState.STOPPED


class WorkerScheduler:
    """Start one TargetLoop thread per assigned ping target."""

    def __init__(
        self,
        catalogue: Catalogue,
        prober: Prober,
        submit: Submitter,
        *,
        max_probe_timeout: float = DEFAULT_MAX_PROBE_TIMEOUT,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.stop_event = stop_event or threading.Event()
        self.loops: List[TargetLoop] = []
        self._threads: Dict[str, threading.Thread] = {}
        for group, name, target in catalogue:
            if target.probe != PING:
                logger.warning("skipping %s.%s: unsupported probe kind %r", group, name, target.probe)
                continue
            self.loops.append(
                TargetLoop(group, name, target, prober, submit, self.stop_event,
                           max_probe_timeout=max_probe_timeout)
            )

    def start(self) -> None:
        for loop in self.loops:
            t = threading.Thread(target=loop.run, name=f"probe-{loop.series}", daemon=True)
            self._threads[loop.series] = t
            t.start()

    def stop(self) -> None:
        self.stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        for t in self._threads.values():
            t.join(timeout)

    def alive(self) -> int:
        return sum(1 for t in self._threads.values() if t.is_alive())
