"""
JSON file session store.

Keeps every snapshot in a single file keyed by identity, which is all a
personal deployment needs.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Union

from blackboard_bot.models import SessionSnapshot

logger = logging.getLogger(__name__)


class JsonSessionStore:
    """
    Stores snapshots in one JSON document.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write never leaves a truncated store behind.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8").strip()
        if not raw:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, data: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def load_all(self) -> Dict[str, SessionSnapshot]:
        snapshots = {}
        for identity, value in self._read().items():
            try:
                snapshots[identity] = SessionSnapshot.model_validate(value)
            except ValueError as e:
                logger.warning(f"Skipping unreadable snapshot for {identity}: {e}")
        return snapshots

    def save(self, identity: str, snapshot: SessionSnapshot) -> None:
        data = self._read()
        data[identity] = snapshot.model_dump(mode="json")
        self._write(data)
        logger.debug(f"Stored snapshot for {identity} in {self.path}")

    def delete(self, identity: str) -> None:
        data = self._read()
        if data.pop(identity, None) is not None:
            self._write(data)
