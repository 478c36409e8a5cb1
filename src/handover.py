# src/handover.py
"""
Handover simulation: the terminal stays on its serving satellite until a
visible candidate beats it by more than the hysteresis margin.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

import config
from terminal_log import tagged

log = tagged(logging.getLogger(__name__), "HANDOVER")


@dataclass
class Candidate:
    index: int
    name: str
    norad_id: int
    snr_db: float
    el_deg: float


@dataclass
class HandoverEvent:
    time: datetime
    kind: str  # acquire, switch, reselect, lost
    from_name: str = None
    to_name: str = None
    from_snr_db: float = None
    to_snr_db: float = None


class HandoverController:
    def __init__(self, hysteresis_db=config.HANDOVER_HYSTERESIS_DB,
                 max_candidates=config.HANDOVER_CANDIDATES, history=config.HANDOVER_HISTORY):
        self.hysteresis_db = hysteresis_db
        self.max_candidates = max_candidates
        self.serving = None
        self.candidates = []
        self.events = deque(maxlen=history)

    def reset(self):
        self.serving = None
        self.candidates = []

    def update(self, visible, when=None):
        """Feed the currently visible satellites; return the event this step caused, if any."""
        when = when or datetime.now(timezone.utc)
        ranked = sorted(visible, key=lambda c: c.snr_db, reverse=True)
        event = None

        if not ranked:
            if self.serving is not None:
                event = HandoverEvent(when, "lost", from_name=self.serving.name,
                                      from_snr_db=self.serving.snr_db)
                log.warning(f"Connection lost: {self.serving.name}")
            self.reset()
            return self._record(event)

        best = ranked[0]
        current = None
        if self.serving is not None:
            current = next((c for c in ranked if c.norad_id == self.serving.norad_id), None)

        if self.serving is None:
            event = HandoverEvent(when, "acquire", to_name=best.name, to_snr_db=best.snr_db)
            log.info(f"Acquired {best.name} ({best.snr_db:.1f} dB)")
            self.serving = best
        elif current is None:
            event = HandoverEvent(when, "reselect", self.serving.name, best.name,
                                  self.serving.snr_db, best.snr_db)
            log.info(f"{self.serving.name} out of view, reselected {best.name} ({best.snr_db:.1f} dB)")
            self.serving = best
        elif best.norad_id != current.norad_id and best.snr_db > current.snr_db + self.hysteresis_db:
            event = HandoverEvent(when, "switch", current.name, best.name,
                                  current.snr_db, best.snr_db)
            log.info(f"Handover {current.name} -> {best.name} "
                     f"({current.snr_db:.1f} -> {best.snr_db:.1f} dB)")
            self.serving = best
        else:
            self.serving = current

        self.candidates = [
            c for c in ranked if c.norad_id != self.serving.norad_id
        ][:self.max_candidates]
        return self._record(event)

    def _record(self, event):
        if event is not None:
            self.events.append(event)
        return event
