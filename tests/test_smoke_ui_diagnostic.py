from __future__ import annotations

import os


def test_ui_smoke_open_diagnostic_and_start_first_subtest(monkeypatch, tmp_path) -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
    monkeypatch.setenv("S2_DB_PATH", str(tmp_path / "s2.sqlite3"))

    import pygame

    from s2_cognition.app import run

    def key(k: int) -> None:
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": k, "mod": 0, "unicode": ""}))

    def inject(frame: int) -> None:
        # Main Menu -> S2 Diagnostic -> start assessment -> leave instructions -> tap during countdown
        if frame == 1:
            key(pygame.K_RETURN)
        elif frame == 2:
            key(pygame.K_RETURN)
        elif frame == 3:
            key(pygame.K_RETURN)
        elif frame == 4:
            key(pygame.K_1)
        elif frame == 6:
            key(pygame.K_F12)
        elif frame == 8:
            key(pygame.K_ESCAPE)

    assert run(max_frames=12, event_injector=inject) == 0
