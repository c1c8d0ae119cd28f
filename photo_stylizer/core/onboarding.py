"""Persisted "onboarding completed" flag."""

import json
from pathlib import Path
from typing import Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


class OnboardingStore:
    """Single boolean kept in a local JSON file, read once and written on completion."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()
        self._completed: Optional[bool] = None

    def is_completed(self) -> bool:
        if self._completed is None:
            self._completed = self._read()
        return self._completed

    def complete(self):
        """User finished the onboarding screens."""
        self._write("completed")

    def skip(self):
        """User skipped onboarding; treated the same as completing it."""
        self._write("skipped")

    def _read(self) -> bool:
        if not self.path.exists():
            return False

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                f"Unreadable onboarding state, showing onboarding again: {e}",
                extra={"path": str(self.path)}
            )
            return False

        return isinstance(data, dict) and data.get("completed") is True

    def _write(self, how: str):
        if self.is_completed():
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"completed": True}), encoding="utf-8")
        self._completed = True

        logger.info(
            f"Onboarding {how}",
            extra={"path": str(self.path)}
        )
