"""Shared fixtures for projinit tests."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from projinit_cli import MenuItem


class RecordingDriver:
    """Stand-in render driver that records every frame it is asked to draw."""

    def __init__(self):
        self.frames: list[tuple] = []

    def render_menu(self, items, selected_index, prompt_text=""):
        self.frames.append(("menu", selected_index))

    def render_text(self, buffer, prompt_text=""):
        self.frames.append(("text", buffer))


def _replay(*sequence):
    it = iter(sequence)

    def _read():
        try:
            return next(it)
        except StopIteration:
            raise AssertionError("state machine asked for more keys than provided")

    return _read


@pytest.fixture
def keys():
    """Factory for read_key callables that replay a fixed key sequence."""
    return _replay


@pytest.fixture
def driver():
    return RecordingDriver()


@pytest.fixture
def menu():
    return [MenuItem(label, label) for label in ["rust", "web", "cpp", "ocaml", "haskell"]]


@pytest.fixture
def plain_console():
    return Console(file=io.StringIO(), width=80, color_system=None)
