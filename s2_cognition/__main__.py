from __future__ import annotations

import logging
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Put the repository root on ``sys.path`` when run as a plain script."""
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # python -m s2_cognition
    from .app import run  # type: ignore[attr-defined]
    from .config import AppSettings  # type: ignore[attr-defined]
except ImportError:
    # python s2_cognition/__main__.py
    _ensure_repo_root_on_path()
    from s2_cognition.app import run  # type: ignore[attr-defined]
    from s2_cognition.config import AppSettings  # type: ignore[attr-defined]


def main() -> int:
    """Entry point for running the diagnostic from the command line."""
    settings = AppSettings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run(settings=settings)


if __name__ == "__main__":
    raise SystemExit(main())
