"""
JSON file persistence for SignalState.

A missing or unreadable file is treated as a first run.  Writes go through a
temp file and ``os.replace`` so a crash mid-write never leaves half a file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from strategy.pair_state import SignalState

logger = logging.getLogger(__name__)


class JsonStateStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> SignalState:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No state at %s, starting fresh", self.path)
            return SignalState()
        except OSError as exc:
            logger.warning("Cannot read state %s (%s), starting fresh", self.path, exc)
            return SignalState()
        try:
            return SignalState.from_dict(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("Corrupt state %s (%s), starting fresh", self.path, exc)
            return SignalState()

    def save(self, state: SignalState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state.to_dict(), fh, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
