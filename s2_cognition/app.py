"""Pygame UI shell for the S2 Cognition Diagnostic.

Main menu offers the diagnostic per sport. Each diagnostic screen shows the
retest gate, runs the three subtests in order and presents the results.

Deterministic timing/scoring/RNG/state lives in s2_cognition/* (core modules);
this module only draws snapshots and forwards input.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .analysis import ResultsReport, format_change, score_tier
from .clock import RealClock, SystemCalendar
from .cognitive_core import CountdownSubtest, Phase, TestSnapshot
from .config import AppSettings
from .decision_efficiency import DecisionEfficiencyPayload, DecisionEfficiencyTest
from .diagnostic import DiagnosticPhase, DiagnosticSession
from .errors import PersistenceError
from .persistence import SqliteResultRepository
from .processing_speed import ProcessingSpeedPayload, ProcessingSpeedTest
from .results import Sport
from .stimuli import Pattern, Shape
from .visual_motor import VisualMotorPayload, VisualMotorTest

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
HEADER_BG = (18, 30, 118)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
TEXT_WARN = (245, 176, 70)
TEXT_ERROR = (248, 113, 113)
TEXT_GOOD = (52, 211, 153)

# 64 px target disc on a 300 px tall play surface.
_TARGET_RADIUS_OF_HEIGHT = 32.0 / 300.0

_TIER_COLORS = {
    "Elite": (251, 191, 36),
    "Advanced": (52, 211, 153),
    "Developing": (45, 212, 191),
    "Foundational": (148, 163, 184),
}


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _hex_color(value: str) -> tuple[int, int, int]:
    raw = value.lstrip("#")
    return (int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16))


def _draw_frame(surface: pygame.Surface, title: str, tag: str, font: pygame.font.Font, tag_font: pygame.font.Font) -> pygame.Rect:
    w, h = surface.get_size()
    surface.fill(BG)

    frame_margin = max(10, min(26, w // 34))
    frame = pygame.Rect(frame_margin, frame_margin, max(260, w - frame_margin * 2), max(220, h - frame_margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)

    header_h = max(34, min(52, h // 8))
    header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, header_h)
    pygame.draw.rect(surface, HEADER_BG, header)
    pygame.draw.line(surface, BORDER, (header.x, header.bottom), (header.right, header.bottom), 1)

    tag_text = tag_font.render(tag, True, TEXT_MUTED)
    surface.blit(tag_text, (header.x + 12, header.y + (header.h - tag_text.get_height()) // 2))
    title_text = font.render(title, True, TEXT_MAIN)
    surface.blit(title_text, title_text.get_rect(center=(frame.centerx, header.centery)))

    return pygame.Rect(frame.x + 16, header.bottom + 12, frame.w - 32, frame.bottom - header.bottom - 24)


def _blit_lines(
    surface: pygame.Surface,
    font: pygame.font.Font,
    lines: list[str],
    *,
    x: int,
    y: int,
    color: tuple[int, int, int] = TEXT_MAIN,
    line_h: int = 26,
) -> int:
    for line in lines:
        surface.blit(font.render(line, True, color), (x, y))
        y += line_h
    return y


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, self._title, "MENU", self._title_font, self._hint_font)

        row_h = 44
        gap = 8
        y = content.y + 12
        for idx, item in enumerate(self._items):
            row = pygame.Rect(content.x + 12, y, content.w - 24, row_h)
            selected = idx == self._selected
            if selected:
                pygame.draw.rect(surface, (244, 248, 255), row)
                pygame.draw.rect(surface, (120, 142, 196), row, 2)
            else:
                pygame.draw.rect(surface, (9, 20, 106), row)
                pygame.draw.rect(surface, (62, 84, 152), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h + gap

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(content.centerx, content.bottom)))


class DiagnosticScreen:
    def __init__(self, app: App, *, session: DiagnosticSession) -> None:
        self._app = app
        self._session = session
        self._load_error: str | None = None
        self._play_rect = pygame.Rect(0, 0, 1, 1)

        self._title_font = pygame.font.Font(None, 42)
        self._small_font = pygame.font.Font(None, 26)
        self._tiny_font = pygame.font.Font(None, 20)
        self._big_font = pygame.font.Font(None, 96)

        self._load()

    def _load(self) -> None:
        try:
            self._session.load()
            self._load_error = None
        except PersistenceError as exc:
            self._load_error = str(exc)

    def handle_event(self, event: pygame.event.Event) -> None:
        phase = self._session.phase
        running = phase in (
            DiagnosticPhase.PROCESSING_SPEED,
            DiagnosticPhase.DECISION_EFFICIENCY,
            DiagnosticPhase.VISUAL_MOTOR,
        )

        # Emergency exit: abandon the assessment from any state.
        if event.type == pygame.KEYDOWN and (
            event.key == pygame.K_F12 or (event.key == pygame.K_ESCAPE and (getattr(event, "mod", 0) & pygame.KMOD_SHIFT))
        ):
            if running or phase is DiagnosticPhase.SAVING:
                self._session.cancel()
            else:
                self._app.pop()
            return

        if phase is DiagnosticPhase.INTRO:
            self._handle_intro(event)
        elif running:
            engine = self._session.engine
            if engine is not None:
                self._handle_subtest(event, engine)
        elif phase is DiagnosticPhase.SAVING:
            if event.type == pygame.KEYDOWN and event.key == pygame.K_r:
                self._session.retry_save()
        elif phase is DiagnosticPhase.RESULTS:
            if event.type == pygame.KEYDOWN and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_ESCAPE):
                self._session.finish()

    def _handle_intro(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()
        elif event.key == pygame.K_r and self._load_error is not None:
            self._load()
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER) and self._session.can_start():
            self._session.start()

    def _handle_subtest(self, event: pygame.event.Event, engine: CountdownSubtest) -> None:
        snap = engine.snapshot()
        if snap.phase is Phase.INSTRUCTIONS:
            if event.type == pygame.KEYDOWN and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                engine.start()
            return
        if snap.phase is not Phase.PLAYING:
            return

        if isinstance(engine, ProcessingSpeedTest) and event.type == pygame.KEYDOWN:
            choice = self._count_from_key(event.key)
            if choice is not None:
                engine.submit_count(choice, trial_seq=snap.trial_seq)
        elif isinstance(engine, DecisionEfficiencyTest):
            if (event.type == pygame.KEYDOWN and event.key == pygame.K_SPACE) or (
                event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1
            ):
                engine.tap(trial_seq=snap.trial_seq)
        elif isinstance(engine, VisualMotorTest):
            if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
                # Only clicks on the play surface count as taps.
                if not self._play_rect.collidepoint(event.pos):
                    return
                x, y = event.pos
                rect = self._play_rect
                x_pct = (x - rect.x) / float(max(1, rect.w)) * 100.0
                y_pct = (y - rect.y) / float(max(1, rect.h)) * 100.0
                engine.tap_at(x_pct, y_pct, trial_seq=snap.trial_seq)

    @staticmethod
    def _count_from_key(key: int) -> int | None:
        mapping = {
            pygame.K_0: 0,
            pygame.K_1: 1,
            pygame.K_2: 2,
            pygame.K_KP0: 0,
            pygame.K_KP1: 1,
            pygame.K_KP2: 2,
        }
        return mapping.get(key)

    def render(self, surface: pygame.Surface) -> None:
        self._session.update()
        phase = self._session.phase
        sport = self._session.sport.value.capitalize()
        content = _draw_frame(surface, f"S2 Cognition Diagnostic - {sport}", "S2", self._title_font, self._tiny_font)

        if phase is DiagnosticPhase.INTRO:
            self._render_intro(surface, content)
        elif phase is DiagnosticPhase.SAVING:
            self._render_saving(surface, content)
        elif phase is DiagnosticPhase.RESULTS:
            report = self._session.report()
            if report is not None:
                self._render_results(surface, content, report)
        else:
            engine = self._session.engine
            if engine is not None:
                self._render_subtest(surface, content, engine.snapshot())

    def _render_intro(self, surface: pygame.Surface, content: pygame.Rect) -> None:
        lines = [
            "What this measures:",
            "  Processing Speed - pattern recognition speed",
            "  Decision Efficiency - go/no-go accuracy",
            "  Visual-Motor - hand-eye coordination",
            "",
            "Find a quiet space. You can take this assessment once every 16 weeks.",
        ]
        y = _blit_lines(surface, self._small_font, lines, x=content.x + 12, y=content.y + 8)

        if self._load_error is not None:
            _blit_lines(
                surface,
                self._small_font,
                ["Could not load your previous results.", self._load_error, "Press R to retry."],
                x=content.x + 12,
                y=y + 12,
                color=TEXT_ERROR,
            )
            return

        latest = self._session.latest_result
        if latest is not None and latest.overall_score is not None:
            change = None if latest.comparison_vs_prior is None else latest.comparison_vs_prior.overall_change
            tier = score_tier(latest.overall_score)
            summary = (
                f"Latest ({latest.test_date.strftime('%b %d, %Y')}): {latest.overall_score}  "
                f"{tier.value}  ({format_change(change)})"
            )
            surface.blit(self._small_font.render(summary, True, _TIER_COLORS[tier.value]), (content.x + 12, y + 12))
            y += 40

        gate = self._session.gate()
        if self._session.can_start():
            msg, color = "Press Enter to start the assessment.", TEXT_GOOD
        else:
            when = "N/A" if gate.next_test_date is None else gate.next_test_date.strftime("%B %d, %Y")
            msg, color = f"Locked for {gate.days_remaining} days. Next assessment available on {when}.", TEXT_WARN
        surface.blit(self._small_font.render(msg, True, color), (content.x + 12, y + 16))

    def _render_saving(self, surface: pygame.Surface, content: pygame.Rect) -> None:
        scores = self._session.scores
        lines = [
            f"Processing Speed:    {scores.processing_speed}",
            f"Decision Efficiency: {scores.decision_efficiency}",
            f"Visual-Motor:        {scores.visual_motor}",
        ]
        y = _blit_lines(surface, self._small_font, lines, x=content.x + 12, y=content.y + 8)
        outcome = self._session.last_outcome
        if outcome is not None and self._session.save_error is not None:
            _blit_lines(
                surface,
                self._small_font,
                [
                    f"Overall: {outcome.overall_score}",
                    "Your result was NOT recorded.",
                    str(outcome.error),
                    "Press R to retry saving, Shift+Esc to discard.",
                ],
                x=content.x + 12,
                y=y + 16,
                color=TEXT_ERROR,
            )
        else:
            surface.blit(self._small_font.render("Saving...", True, TEXT_MUTED), (content.x + 12, y + 16))

    def _render_results(self, surface: pygame.Surface, content: pygame.Rect, report: ResultsReport) -> None:
        tier_color = _TIER_COLORS[report.overall_tier.value]
        big = self._big_font.render(str(report.overall_score), True, tier_color)
        surface.blit(big, (content.x + 12, content.y + 4))
        label = f"{report.overall_tier.value}   ({report.overall_change} vs prior)"
        surface.blit(self._small_font.render(label, True, tier_color), (content.x + 140, content.y + 30))

        y = content.y + 96
        for area in report.areas:
            line = f"{area.label}: {area.score}  {area.tier.value}  ({area.change})"
            surface.blit(self._small_font.render(line, True, TEXT_MAIN), (content.x + 12, y))
            y += 28

        y += 8
        y = _blit_lines(
            surface,
            self._tiny_font,
            [f"Strength: {report.strength.label}", f"Limiter: {report.limiter.label}", report.limiter.message],
            x=content.x + 12,
            y=y,
            color=TEXT_MUTED,
            line_h=22,
        )
        gate = self._session.gate()
        when = "" if gate.next_test_date is None else gate.next_test_date.strftime("%B %d, %Y")
        _blit_lines(
            surface,
            self._tiny_font,
            [f"Next assessment: {when}", "Press Enter to return."],
            x=content.x + 12,
            y=y + 8,
            color=TEXT_MUTED,
            line_h=22,
        )

    def _render_subtest(self, surface: pygame.Surface, content: pygame.Rect, snap: TestSnapshot) -> None:
        header = f"{snap.title}   {min(snap.trial_index + 1, snap.total_trials)}/{snap.total_trials}"
        surface.blit(self._small_font.render(header, True, TEXT_MUTED), (content.x + 12, content.y + 4))

        if snap.phase is Phase.COUNTDOWN:
            num = self._big_font.render(str(snap.countdown), True, TEXT_MAIN)
            surface.blit(num, num.get_rect(center=content.center))
            return
        if snap.phase is not Phase.PLAYING:
            _blit_lines(surface, self._small_font, snap.prompt.split("\n"), x=content.x + 12, y=content.y + 40)
            return

        prompt = self._small_font.render(snap.prompt, True, TEXT_MAIN)
        surface.blit(prompt, prompt.get_rect(midtop=(content.centerx, content.y + 34)))
        self._play_rect = pygame.Rect(content.x + 40, content.y + 70, content.w - 80, content.h - 110)
        pygame.draw.rect(surface, (6, 13, 92), self._play_rect)
        pygame.draw.rect(surface, (78, 102, 170), self._play_rect, 1)

        p = snap.payload
        if isinstance(p, ProcessingSpeedPayload):
            self._render_processing_speed(surface, p)
        elif isinstance(p, DecisionEfficiencyPayload):
            self._render_decision_efficiency(surface, p)
        elif isinstance(p, VisualMotorPayload):
            self._render_visual_motor(surface, p)

        hint = self._tiny_font.render(snap.input_hint, True, TEXT_MUTED)
        surface.blit(hint, hint.get_rect(midbottom=(content.centerx, content.bottom)))

    def _render_processing_speed(self, surface: pygame.Surface, p: ProcessingSpeedPayload) -> None:
        rect = self._play_rect
        surface.blit(self._tiny_font.render("TARGET", True, TEXT_MUTED), (rect.x + 12, rect.y + 10))
        self._draw_pattern(surface, p.target, (rect.x + 40, rect.y + 56), 40)

        if p.patterns is not None:
            cols = 4
            cell_w = (rect.w - 120) // cols
            for i, pattern in enumerate(p.patterns):
                cx = rect.x + 100 + cell_w * (i % cols) + cell_w // 2
                cy = rect.y + rect.h // 3 + (i // cols) * (rect.h // 3)
                self._draw_pattern(surface, pattern, (cx, cy), 44)
        elif p.accepting_input:
            for i, choice in enumerate(p.choices):
                box = pygame.Rect(0, 0, 90, 70)
                box.center = (rect.centerx + (i - 1) * 120, rect.centery)
                pygame.draw.rect(surface, (9, 20, 106), box)
                pygame.draw.rect(surface, BORDER, box, 2)
                num = self._title_font.render(str(choice), True, TEXT_MAIN)
                surface.blit(num, num.get_rect(center=box.center))

    def _render_decision_efficiency(self, surface: pygame.Surface, p: DecisionEfficiencyPayload) -> None:
        if p.stimulus is None:
            return
        radius = max(30, min(self._play_rect.w, self._play_rect.h) // 5)
        pygame.draw.circle(surface, _hex_color(p.stimulus.color), self._play_rect.center, radius)

    def _render_visual_motor(self, surface: pygame.Surface, p: VisualMotorPayload) -> None:
        if p.target is None:
            return
        rect = self._play_rect
        cx = rect.x + int(rect.w * p.target.x_pct / 100.0)
        cy = rect.y + int(rect.h * p.target.y_pct / 100.0)
        radius = max(12, int(rect.h * _TARGET_RADIUS_OF_HEIGHT))
        pygame.draw.circle(surface, (20, 184, 166), (cx, cy), radius)
        pygame.draw.circle(surface, BORDER, (cx, cy), max(3, radius // 4))

    def _draw_pattern(self, surface: pygame.Surface, pattern: Pattern, center: tuple[int, int], size: int) -> None:
        color = _hex_color(pattern.color.value)
        cx, cy = center
        half = size // 2
        if pattern.shape is Shape.CIRCLE:
            pygame.draw.circle(surface, color, center, half)
        elif pattern.shape is Shape.SQUARE:
            pygame.draw.rect(surface, color, pygame.Rect(cx - half, cy - half, size, size))
        elif pattern.shape is Shape.TRIANGLE:
            pygame.draw.polygon(surface, color, [(cx, cy - half), (cx - half, cy + half), (cx + half, cy + half)])
        else:
            pygame.draw.polygon(surface, color, [(cx, cy - half), (cx + half, cy), (cx, cy + half), (cx - half, cy)])


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    settings: AppSettings | None = None,
) -> int:
    cfg = settings or AppSettings.from_env()

    pygame.init()
    pygame.display.set_caption("S2 Cognition Diagnostic")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    repository = SqliteResultRepository(cfg.db_path)
    real_clock = RealClock()
    calendar = SystemCalendar()

    def open_diagnostic(sport: Sport) -> None:
        session = DiagnosticSession(
            repository=repository,
            user_id=cfg.user_id,
            sport=sport,
            clock=real_clock,
            calendar=calendar,
            seed=_new_seed(),
        )
        app.push(DiagnosticScreen(app, session=session))

    ordered = [cfg.sport] + [s for s in Sport if s is not cfg.sport]
    main_items = [MenuItem(f"S2 Diagnostic - {s.value.capitalize()}", lambda s=s: open_diagnostic(s)) for s in ordered]
    main_items.append(MenuItem("Quit", app.quit))

    app.push(MenuScreen(app, "Main Menu", main_items, is_root=True))
    logger.info("S2 UI started (user=%s, db=%s)", cfg.user_id, repository.path)

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
