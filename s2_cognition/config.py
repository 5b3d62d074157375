from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .results import Sport

DB_PATH_ENV = "S2_DB_PATH"
USER_ID_ENV = "S2_USER_ID"
SPORT_ENV = "S2_SPORT"
LOG_LEVEL_ENV = "S2_LOG_LEVEL"

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppSettings:
    db_path: Path
    user_id: str = "local"
    sport: Sport = Sport.BASEBALL
    log_level: str = "INFO"

    @classmethod
    def default_db_path(cls) -> Path:
        explicit = os.environ.get(DB_PATH_ENV)
        if explicit:
            return Path(explicit).expanduser()
        return Path.home() / ".s2_cognition_diagnostics.sqlite3"

    @classmethod
    def from_env(cls) -> AppSettings:
        user_id = os.environ.get(USER_ID_ENV, "").strip() or "local"

        raw_sport = os.environ.get(SPORT_ENV, "").strip().lower()
        try:
            sport = Sport(raw_sport) if raw_sport else Sport.BASEBALL
        except ValueError:
            logger.warning("Unknown %s=%r, falling back to baseball", SPORT_ENV, raw_sport)
            sport = Sport.BASEBALL

        log_level = os.environ.get(LOG_LEVEL_ENV, "").strip().upper() or "INFO"
        return cls(db_path=cls.default_db_path(), user_id=user_id, sport=sport, log_level=log_level)
