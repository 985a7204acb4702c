# fntracker/persistence.py

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class StateFile:
    """Whole-state JSON file. Writes go through a temp file and os.replace."""

    def __init__(self, path: str = 'data/state.json'):
        self.path = self._resolve_path(path)

    @staticmethod
    def _resolve_path(path: str) -> str:
        """Return an absolute path anchored to the project root when relative."""
        candidate = Path(path)
        if candidate.is_absolute():
            return str(candidate)
        project_root = Path(__file__).resolve().parents[1]
        return str(project_root / candidate)

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored state, or None when missing or unreadable."""
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s, starting empty: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("State file %s does not hold an object, starting empty", self.path)
            return None
        return data

    def save(self, state: Dict[str, Any]) -> bool:
        """Write the state. Failures are logged and reported as False."""
        tmp_path = f"{self.path}.tmp"
        try:
            state_dir = os.path.dirname(self.path)
            if state_dir:
                os.makedirs(state_dir, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(state, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save state to %s: %s", self.path, e)
            return False
