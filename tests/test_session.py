"""Tests for run_session and key normalization."""

from __future__ import annotations

import io
from unittest.mock import MagicMock, patch

import pytest
import readchar

from projinit_cli import (
    GracefulCancel,
    SessionOutcome,
    TerminalSurface,
    get_key,
    language_menu,
    run_session,
)


def _surface():
    return TerminalSurface(MagicMock(), stream=io.StringIO())


class TestRunSession:
    def test_name_then_language(self, menu, driver, keys):
        surface = _surface()
        outcome = run_session(surface, driver, menu, keys("d", "e", "m", "o", "enter", "down", "enter"))
        assert outcome == SessionOutcome(project_name="demo", language="web")
        assert driver.frames[0] == ("text", "")
        assert driver.frames[-1] == ("menu", 1)

    def test_outcome_is_frozen(self, menu, driver, keys):
        outcome = run_session(_surface(), driver, menu, keys("a", "enter", "enter"))
        with pytest.raises(AttributeError):
            outcome.project_name = "other"

    def test_given_name_skips_text_entry(self, menu, driver, keys):
        outcome = run_session(_surface(), driver, menu, keys("up", "enter"), project_name="demo")
        assert outcome == SessionOutcome("demo", "haskell")
        assert all(kind == "menu" for kind, _ in driver.frames)

    def test_given_language_skips_menu(self, menu, driver, keys):
        outcome = run_session(_surface(), driver, menu, keys("x", "enter"), language="cpp")
        assert outcome == SessionOutcome("x", "cpp")
        assert all(kind == "text" for kind, _ in driver.frames)

    @pytest.mark.parametrize("sequence", [
        ("interrupt",),
        ("a", "b", "interrupt"),
        ("a", "enter", "interrupt"),
        ("a", "enter", "down", "down", "interrupt"),
    ])
    def test_interrupt_anywhere_cancels_and_releases(self, menu, driver, keys, sequence):
        surface = _surface()
        with patch.object(surface, "release", wraps=surface.release) as release:
            with pytest.raises(GracefulCancel):
                run_session(surface, driver, menu, keys(*sequence))
        release.assert_called_once()
        assert surface.alt_screen is False
        assert surface.raw_mode is False

    def test_success_releases_once(self, menu, driver, keys):
        surface = _surface()
        with patch.object(surface, "release", wraps=surface.release) as release:
            run_session(surface, driver, menu, keys("a", "enter", "enter"))
        release.assert_called_once()
        assert surface.alt_screen is False

    def test_io_fault_releases_and_propagates(self, menu, driver):
        surface = _surface()

        def _read():
            raise OSError("stdin closed")

        with patch.object(surface, "release", wraps=surface.release) as release:
            with pytest.raises(OSError, match="stdin closed"):
                run_session(surface, driver, menu, _read)
        release.assert_called_once()
        assert surface.alt_screen is False

    def test_render_fault_releases(self, menu, keys):
        surface = _surface()
        broken = MagicMock()
        broken.render_text.side_effect = OSError("write failed")
        with pytest.raises(OSError):
            run_session(surface, broken, menu, keys("enter"))
        assert surface.alt_screen is False


class TestLanguageMenu:
    def test_order_and_payloads(self):
        items = language_menu()
        assert [item.label for item in items] == ["rust", "web", "cpp", "ocaml", "haskell"]
        assert all(item.payload == item.label for item in items)


class TestGetKey:
    @pytest.mark.parametrize("raw, expected", [
        (readchar.key.UP, "up"),
        (readchar.key.DOWN, "down"),
        (readchar.key.ENTER, "enter"),
        ("\n", "enter"),
        (readchar.key.BACKSPACE, "backspace"),
        ("\x08", "backspace"),
        (readchar.key.CTRL_C, "interrupt"),
        ("q", "q"),
    ])
    def test_normalizes_keys(self, raw, expected):
        with patch("projinit_cli.readchar.readkey", return_value=raw):
            assert get_key() == expected


class TestInterruptOutsideRead:
    def test_interrupt_during_render_cancels_and_releases(self, menu, keys):
        surface = _surface()
        broken = MagicMock()
        broken.render_text.side_effect = [None, KeyboardInterrupt]
        with patch.object(surface, "release", wraps=surface.release) as release:
            with pytest.raises(GracefulCancel):
                run_session(surface, broken, menu, keys("a"))
        release.assert_called_once()
        assert surface.alt_screen is False

    def test_interrupt_during_menu_render_cancels(self, menu, keys):
        broken = MagicMock()
        broken.render_menu.side_effect = KeyboardInterrupt
        with pytest.raises(GracefulCancel):
            run_session(_surface(), broken, menu, keys(), project_name="demo")
