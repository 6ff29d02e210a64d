"""Fixed-interval poll loop: scan, map, write. Any failure ends the loop."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ts3stats.collector.base import MetricsCollector
from ts3stats.errors import CollectorError
from ts3stats.output.telegraf import TelegrafSink

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10.0


def run_once(collector: MetricsCollector, sink: TelegrafSink) -> int:
    """One tick. Returns how many measurements were written."""
    measurements = collector.collect()
    for measurement in measurements:
        sink.write(measurement)
    log.info("Wrote %d measurements from %s", len(measurements), collector.name())
    return len(measurements)


def run_poller(
    collector: MetricsCollector,
    sink: TelegrafSink,
    interval: float = DEFAULT_INTERVAL,
    max_ticks: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Run ticks every `interval` seconds, first one after one interval.

    Ticks never overlap: a slow scan skips the ticks it overran rather
    than queueing them. CollectorError is logged and re-raised, the
    caller decides what fatal means. Returns the number of ticks run.
    """
    log.info("Polling %s every %.1fs -> %s", collector.name(), interval, sink.url)

    ticks = 0
    next_tick = time.monotonic() + interval
    try:
        while max_ticks is None or ticks < max_ticks:
            sleep(max(0.0, next_tick - time.monotonic()))

            try:
                run_once(collector, sink)
            except CollectorError as e:
                log.error("Tick %d failed: %s", ticks + 1, e)
                raise
            ticks += 1

            next_tick += interval
            now = time.monotonic()
            if next_tick < now:
                log.warning("Scan took longer than %.1fs, skipping missed ticks", interval)
                next_tick = now + interval
    except KeyboardInterrupt:
        log.info("Interrupted after %d ticks", ticks)

    return ticks
