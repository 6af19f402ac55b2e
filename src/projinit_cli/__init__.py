#!/usr/bin/env python3
# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "typer",
#     "rich",
#     "readchar",
# ]
# ///
"""
Projinit CLI - Interactive starter for new projects

Usage:
    uvx projinit-cli.py init
    uvx projinit-cli.py init <project-name> --language rust

Or install globally:
    uv tool install --from projinit-cli.py projinit-cli
    projinit init
    projinit check
"""

import os
import subprocess
import sys
import shutil
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, NamedTuple, Optional, Sequence

import typer
from rich.console import Console, Group
from rich.panel import Panel
from rich.markup import escape
from rich.text import Text
from rich.live import Live
from rich.align import Align
from rich.table import Table
from rich.tree import Tree
from typer.core import TyperGroup

# For cross-platform keyboard input
import readchar

if os.name != "nt":
    import termios
    import tty


class ProjinitError(Exception):
    """Base class for projinit failures."""


class GracefulCancel(ProjinitError):
    """The user interrupted name entry or language selection."""


class TerminalError(OSError):
    """Raw mode could not be toggled on the controlling terminal."""


@dataclass(frozen=True)
class CommandInitializer:
    """Project created by an external generator command."""
    executable: str
    args: tuple[str, ...]
    creates_folder: bool
    install_hint: str
    next_step: str

    def command(self, project_name: str) -> list[str]:
        return [self.executable, *(arg.format(name=project_name) for arg in self.args)]


@dataclass(frozen=True)
class StubFileInitializer:
    """Project created by writing a single placeholder file."""
    relative_path: str
    content: str
    next_step: str

    def target(self, base_dir: Path, project_name: str) -> Path:
        return base_dir / self.relative_path.format(name=project_name)


WEB_STUB = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{name}</title>
</head>
<body>
</body>
</html>
"""

CPP_STUB = """#include <iostream>

int main() {
    std::cout << "Hello from {name}!" << std::endl;
    return 0;
}
"""

# Constants
LANGUAGES = MappingProxyType({
    "rust": CommandInitializer(
        executable="cargo",
        args=("new", "{name}"),
        creates_folder=True,
        install_hint="https://rustup.rs",
        next_step="cargo run",
    ),
    "web": StubFileInitializer(
        relative_path="{name}/index.html",
        content=WEB_STUB,
        next_step="open index.html in a browser",
    ),
    "cpp": StubFileInitializer(
        relative_path="{name}/src/main.cpp",
        content=CPP_STUB,
        next_step="c++ src/main.cpp -o main",
    ),
    "ocaml": CommandInitializer(
        executable="dune",
        args=("init", "project", "{name}"),
        creates_folder=True,
        install_hint="https://ocaml.org/install",
        next_step="dune build",
    ),
    # cabal init scaffolds into the working directory
    "haskell": CommandInitializer(
        executable="cabal",
        args=("init", "--non-interactive", "--package-name", "{name}"),
        creates_folder=False,
        install_hint="https://www.haskell.org/ghcup/",
        next_step="cabal run",
    ),
})


class MenuItem(NamedTuple):
    label: str
    payload: str


@dataclass(frozen=True)
class SessionOutcome:
    project_name: str
    language: str


def language_menu() -> list[MenuItem]:
    return [MenuItem(label, label) for label in LANGUAGES]


# ASCII Art Banner
BANNER = """
╔═╗╦═╗╔═╗ ╦╦╔╗╔╦╔╦╗
╠═╝╠╦╝║ ║ ║║║║║║ ║
╩  ╩╚═╚═╝╚╝╩╝╚╝╩ ╩
"""

TAGLINE = "Projinit - Start a new project in any language"

NAME_PROMPT = "Project name:"
LANGUAGE_PROMPT = "What language do you want to use?"


@dataclass
class _Step:
    label: str
    status: str = "pending"
    detail: str = ""


STEP_SYMBOLS = {
    "pending": ("○", "green dim"),
    "running": ("○", "cyan"),
    "done": ("●", "green"),
    "error": ("●", "red"),
    "skipped": ("○", "yellow"),
}


class StepTracker:
    """Ordered step statuses rendered as a rich tree.

    Steps reported before being added are appended with their key as label.
    A refresh callback, when attached, runs after every change so a Live
    display can follow along.
    """

    def __init__(self, title: str):
        self.title = title
        self.steps: dict[str, _Step] = {}
        self._refresh_cb: Optional[Callable[[], None]] = None

    def attach_refresh(self, cb: Callable[[], None]) -> None:
        self._refresh_cb = cb

    def add(self, key: str, label: str) -> None:
        if key not in self.steps:
            self.steps[key] = _Step(label)
            self._changed()

    def start(self, key: str, detail: str = ""):
        self._set(key, "running", detail)

    def complete(self, key: str, detail: str = ""):
        self._set(key, "done", detail)

    def error(self, key: str, detail: str = ""):
        self._set(key, "error", detail)

    def skip(self, key: str, detail: str = ""):
        self._set(key, "skipped", detail)

    def status(self, key: str) -> Optional[str]:
        step = self.steps.get(key)
        return step.status if step else None

    def _set(self, key: str, status: str, detail: str) -> None:
        step = self.steps.setdefault(key, _Step(key))
        step.status = status
        if detail:
            step.detail = detail
        self._changed()

    def _changed(self) -> None:
        if self._refresh_cb:
            self._refresh_cb()

    def render(self) -> Tree:
        # Text, not markup: details carry project names and error messages
        tree = Tree(Text(self.title, style="cyan"), guide_style="grey50")
        for step in self.steps.values():
            symbol, symbol_style = STEP_SYMBOLS.get(step.status, (" ", ""))
            line = Text.assemble((symbol, symbol_style), " ")
            detail = step.detail.strip()
            if step.status == "pending":
                line.append(step.label + (f" ({detail})" if detail else ""), style="bright_black")
            else:
                line.append(step.label, style="white")
                if detail:
                    line.append(f" ({detail})", style="bright_black")
            tree.add(line)
        return tree


def get_key():
    """Get a single keypress in a cross-platform way using readchar."""
    key = readchar.readkey()

    # Arrow keys
    if key == readchar.key.UP:
        return 'up'
    if key == readchar.key.DOWN:
        return 'down'

    # Enter/Return
    if key in (readchar.key.ENTER, "\r", "\n"):
        return 'enter'

    # DEL on most terminals, Ctrl+H on some
    if key in (readchar.key.BACKSPACE, "\x08"):
        return 'backspace'

    # Ctrl+C
    if key == readchar.key.CTRL_C:
        return 'interrupt'

    return key


def _next_key(read_key: Callable[[], str]) -> str:
    # SIGINT delivered between reads counts as the interrupt key
    try:
        return read_key()
    except KeyboardInterrupt:
        return 'interrupt'


class TerminalSurface:
    """Scoped raw mode plus alternate screen for one interactive session.

    Use as a context manager; leaving the block always restores the
    terminal, whether the session succeeded, was cancelled or failed.
    """

    def __init__(self, console: Console, stream=None):
        self.console = console
        self._stream = stream
        self._fd = None
        self._saved_attrs = None
        self.raw_mode = False
        self.alt_screen = False

    def acquire(self) -> "TerminalSurface":
        if self.raw_mode or self.alt_screen:
            raise RuntimeError("terminal surface is already acquired")
        try:
            self._enter_raw_mode()
            self.console.set_alt_screen(True)
            self.alt_screen = True
            self.console.show_cursor(False)
        except BaseException:
            self.release()
            raise
        return self

    def release(self) -> None:
        """Undo whatever acquire() applied. Safe to call more than once."""
        try:
            if self.raw_mode:
                self.raw_mode = False
                try:
                    termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
                except termios.error as e:
                    raise TerminalError(f"failed to restore terminal mode: {e}") from e
        finally:
            if self.alt_screen:
                self.alt_screen = False
                self.console.show_cursor(True)
                self.console.set_alt_screen(False)

    def _enter_raw_mode(self) -> None:
        stream = self._stream if self._stream is not None else sys.stdin
        if os.name == "nt" or not stream.isatty():
            # readchar handles console input itself where termios is unavailable
            return
        try:
            self._fd = stream.fileno()
            self._saved_attrs = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        except termios.error as e:
            raise TerminalError(f"failed to enter raw mode: {e}") from e
        self.raw_mode = True

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


def menu_renderable(items: Sequence[MenuItem], selected_index: int, prompt_text: str = LANGUAGE_PROMPT) -> Panel:
    """Build the selection panel with the current item highlighted."""
    table = Table.grid(padding=(0, 0))
    table.add_column(justify="left")

    for i, item in enumerate(items):
        if i == selected_index:
            table.add_row(Text(f"> {item.label}", style="bold yellow"))
        else:
            table.add_row(Text(f"  {item.label}", style="magenta"))

    table.add_row("")
    table.add_row("[dim]Use ↑/↓ to navigate, Enter to select, Ctrl+C to cancel[/dim]")

    return Panel(
        table,
        title=f"[bold]{prompt_text}[/bold]",
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    )


def text_renderable(buffer: str, prompt_text: str = NAME_PROMPT) -> Group:
    """Build the prompt line followed by the buffer and a block cursor."""
    line = Text(buffer)
    line.append("█", style="dim")
    return Group(
        Text(prompt_text, style="bold cyan"),
        line,
        Text(""),
        Text("Enter to confirm, Backspace to erase, Ctrl+C to cancel", style="dim"),
    )


class RenderDriver:
    """Full-redraw renderer: every call clears the screen and paints one frame."""

    def __init__(self, console: Console):
        self.console = console

    def render_menu(self, items: Sequence[MenuItem], selected_index: int, prompt_text: str = LANGUAGE_PROMPT) -> None:
        self._draw(menu_renderable(items, selected_index, prompt_text))

    def render_text(self, buffer: str, prompt_text: str = NAME_PROMPT) -> None:
        self._draw(text_renderable(buffer, prompt_text))

    def _draw(self, renderable) -> None:
        # One buffered frame, flushed when the context exits
        with self.console:
            self.console.clear()
            self.console.print(renderable)


class MenuSelection:
    """Cursor over a fixed, cyclically wrapped list of menu items."""

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError("menu must contain at least one item")
        self.size = size
        self.cursor = 0
        self.state = "active"

    def handle(self, key: str) -> bool:
        """Apply one key. Returns True when the cursor moved."""
        if self.state != "active":
            return False
        if key == 'up':
            self.cursor = (self.cursor - 1) % self.size
            return True
        if key == 'down':
            self.cursor = (self.cursor + 1) % self.size
            return True
        if key == 'enter':
            self.state = "confirmed"
        elif key == 'interrupt':
            self.state = "cancelled"
        return False


class TextEntry:
    """Single-line editor that only appends and erases at the end."""

    def __init__(self):
        self._chars: list[str] = []
        self.state = "editing"

    @property
    def buffer(self) -> str:
        return "".join(self._chars)

    def handle(self, key: str) -> bool:
        """Apply one key. Returns True when the buffer changed."""
        if self.state != "editing":
            return False
        if key == 'enter':
            self.state = "submitted"
        elif key == 'interrupt':
            self.state = "cancelled"
            self._chars.clear()
        elif key == 'backspace':
            if self._chars:
                self._chars.pop()
                return True
        elif len(key) == 1 and key.isprintable():
            self._chars.append(key)
            return True
        return False


def select_with_arrows(items: Sequence[MenuItem], driver: RenderDriver, read_key: Callable[[], str] = get_key, prompt_text: str = LANGUAGE_PROMPT) -> str:
    """
    Interactive selection using arrow keys.

    Args:
        items: Menu entries in display order
        driver: Renderer that paints each frame
        read_key: Source of normalized key names
        prompt_text: Title shown above the items

    Returns:
        Payload of the confirmed item

    Raises:
        GracefulCancel: when the interrupt key is pressed
    """
    machine = MenuSelection(len(items))
    driver.render_menu(items, machine.cursor, prompt_text)

    while machine.state == "active":
        if machine.handle(_next_key(read_key)):
            driver.render_menu(items, machine.cursor, prompt_text)

    if machine.state == "cancelled":
        raise GracefulCancel("language selection cancelled")
    return items[machine.cursor].payload


def prompt_text_entry(driver: RenderDriver, read_key: Callable[[], str] = get_key, prompt_text: str = NAME_PROMPT) -> str:
    """Collect one line of text. Raises GracefulCancel on interrupt."""
    entry = TextEntry()
    driver.render_text(entry.buffer, prompt_text)

    while entry.state == "editing":
        if entry.handle(_next_key(read_key)):
            driver.render_text(entry.buffer, prompt_text)

    if entry.state == "cancelled":
        raise GracefulCancel("project name entry cancelled")
    return entry.buffer


def run_session(
    surface: TerminalSurface,
    driver: RenderDriver,
    items: Sequence[MenuItem],
    read_key: Callable[[], str] = get_key,
    project_name: Optional[str] = None,
    language: Optional[str] = None,
) -> SessionOutcome:
    """Ask for whatever is missing, inside one acquired terminal session.

    GracefulCancel and I/O errors propagate to the caller after the
    terminal has been released. A KeyboardInterrupt raised anywhere in the
    session, including mid-render, is reported as GracefulCancel.
    """
    try:
        with surface:
            if project_name is None:
                project_name = prompt_text_entry(driver, read_key)
            if language is None:
                language = select_with_arrows(items, driver, read_key)
    except KeyboardInterrupt:
        raise GracefulCancel("session interrupted") from None
    return SessionOutcome(project_name=project_name, language=language)


console = Console()


class BannerGroup(TyperGroup):
    """Custom group that shows banner before help."""

    def format_help(self, ctx, formatter):
        # Show banner before help
        show_banner()
        super().format_help(ctx, formatter)


app = typer.Typer(
    name="projinit",
    help="Interactive starter for new Rust, OCaml, Haskell, C++ and web projects",
    add_completion=False,
    invoke_without_command=True,
    cls=BannerGroup,
)


def show_banner():
    """Display the ASCII art banner."""
    banner_lines = BANNER.strip().split('\n')
    colors = ["bright_magenta", "magenta", "yellow"]

    styled_banner = Text()
    for i, line in enumerate(banner_lines):
        styled_banner.append(line + "\n", style=colors[i % len(colors)])

    console.print(Align.center(styled_banner))
    console.print(Align.center(Text(TAGLINE, style="italic bright_yellow")))
    console.print()


@app.callback()
def callback(ctx: typer.Context):
    """Show banner when no subcommand is provided."""
    if ctx.invoked_subcommand is None and "--help" not in sys.argv and "-h" not in sys.argv:
        show_banner()
        console.print(Align.center("[dim]Run 'projinit --help' for usage information[/dim]"))
        console.print()


def run_command(cmd: list[str], cwd: Optional[Path] = None) -> str:
    """Run an external command and return its captured stdout."""
    try:
        result = subprocess.run(cmd, check=True, capture_output=True, text=True, cwd=cwd)
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        console.print(f"[red]Error running command:[/red] {escape(' '.join(cmd))}")
        console.print(f"[red]Exit code:[/red] {e.returncode}")
        if e.stderr:
            console.print(f"[red]Error output:[/red] {escape(e.stderr)}")
        raise


def check_tool(tool: str) -> bool:
    """Check if a tool is installed."""
    return shutil.which(tool) is not None


def check_tool_for_tracker(tool: str, tracker: StepTracker) -> bool:
    """Check if a tool is installed and update tracker."""
    if check_tool(tool):
        tracker.complete(tool, "available")
        return True
    tracker.error(tool, "not found")
    return False


def validate_project_name(project_name: str) -> None:
    if not project_name or not project_name.strip():
        raise ValueError("Project name cannot be empty")
    if project_name in {".", ".."} or "/" in project_name or "\\" in project_name:
        raise ValueError(f"Project name '{project_name}' must be a plain directory name")


def initialize_project(project_name: str, language: str, base_dir: Optional[Path] = None, *, tracker: StepTracker | None = None) -> Path:
    """Create the project folder for ``language``. Returns the project path.

    Uses tracker if provided (with keys: precheck, folder, generate).
    """
    validate_project_name(project_name)
    if language not in LANGUAGES:
        raise ValueError(f"Unknown language '{language}'. Choose from: {', '.join(LANGUAGES)}")
    initializer = LANGUAGES[language]

    base_dir = Path.cwd() if base_dir is None else base_dir
    project_path = base_dir / project_name
    if project_path.exists():
        raise FileExistsError(f"Directory '{project_name}' already exists")

    if isinstance(initializer, CommandInitializer):
        _run_generator(initializer, project_name, base_dir, project_path, tracker)
    else:
        _write_stub(initializer, project_name, base_dir, project_path, tracker)
    return project_path


def _run_generator(initializer: CommandInitializer, project_name: str, base_dir: Path, project_path: Path, tracker: StepTracker | None) -> None:
    if tracker:
        tracker.start("precheck", initializer.executable)
    if not check_tool(initializer.executable):
        if tracker:
            tracker.error("precheck", f"{initializer.executable} not found")
        raise FileNotFoundError(
            f"{initializer.executable} not found. Install it from {initializer.install_hint}"
        )
    if tracker:
        tracker.complete("precheck", f"{initializer.executable} available")

    cwd = base_dir
    if initializer.creates_folder:
        if tracker:
            tracker.skip("folder", f"created by {initializer.executable}")
    else:
        project_path.mkdir(parents=True)
        cwd = project_path
        if tracker:
            tracker.complete("folder", str(project_path))

    cmd = initializer.command(project_name)
    if tracker:
        tracker.start("generate", " ".join(cmd))
    run_command(cmd, cwd=cwd)
    if tracker:
        tracker.complete("generate", " ".join(cmd))


def _write_stub(initializer: StubFileInitializer, project_name: str, base_dir: Path, project_path: Path, tracker: StepTracker | None) -> None:
    if tracker:
        tracker.skip("precheck", "no external tool needed")
    target = initializer.target(base_dir, project_name)
    # fails if the folder appeared since the existence check
    project_path.mkdir()
    if tracker:
        tracker.complete("folder", str(project_path))
    target.parent.mkdir(parents=True, exist_ok=True)
    if tracker:
        tracker.start("generate", target.name)
    # stub bodies contain literal braces, so no str.format
    target.write_text(initializer.content.replace("{name}", project_name), encoding="utf-8")
    if tracker:
        tracker.complete("generate", str(target.relative_to(base_dir)))


def _created_project_dir(tracker: StepTracker) -> bool:
    """True once this run made the project folder, itself or via the generator."""
    return tracker.status("folder") == "done" or tracker.status("generate") in {"running", "done"}


def _is_interactive() -> bool:
    return sys.stdin.isatty()


def _print_debug_environment():
    _env_pairs = [
        ("Python", sys.version.split()[0]),
        ("Platform", sys.platform),
        ("CWD", str(Path.cwd())),
    ]
    _label_width = max(len(k) for k, _ in _env_pairs)
    env_lines = [f"{k.ljust(_label_width)} → [bright_black]{v}[/bright_black]" for k, v in _env_pairs]
    console.print(Panel("\n".join(env_lines), title="Debug Environment", border_style="magenta"))


@app.command()
def init(
    project_name: str = typer.Argument(None, help="Name for your new project directory (asked interactively when omitted)"),
    language: str = typer.Option(None, "--language", "-l", help="Project language: rust, web, cpp, ocaml or haskell"),
    debug: bool = typer.Option(False, "--debug", help="Show diagnostic output on failures"),
):
    """
    Initialize a new project.

    This command will:
    1. Ask for the project name (unless given)
    2. Let you choose the project language with the arrow keys (unless --language is given)
    3. Run the language's project generator or write a starter file

    Examples:
        projinit init
        projinit init my-project
        projinit init my-project --language rust
        projinit init my-site -l web
    """
    show_banner()

    if language and language not in LANGUAGES:
        console.print(f"[red]Error:[/red] Invalid language '{escape(language)}'. Choose from: {', '.join(LANGUAGES)}")
        raise typer.Exit(1)

    if project_name is None or language is None:
        if not _is_interactive():
            console.print("[red]Error:[/red] An interactive terminal is required. Pass a project name and --language to run without prompts.")
            raise typer.Exit(1)
        try:
            outcome = run_session(
                TerminalSurface(console),
                RenderDriver(console),
                language_menu(),
                read_key=get_key,
                project_name=project_name,
                language=language,
            )
        except GracefulCancel:
            raise typer.Exit(0)
        except OSError as e:
            console.print(Panel(f"Terminal I/O failed: {escape(str(e))}", title="[red]Terminal Error[/red]", border_style="red"))
            if debug:
                _print_debug_environment()
            raise typer.Exit(1)
    else:
        outcome = SessionOutcome(project_name=project_name, language=language)

    try:
        validate_project_name(outcome.project_name)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    project_path = Path(outcome.project_name).resolve()
    name = escape(outcome.project_name)
    path_text = escape(str(project_path))
    if project_path.exists():
        error_panel = Panel(
            f"Directory '[cyan]{name}[/cyan]' already exists\n"
            "Please choose a different project name or remove the existing directory.",
            title="[red]Directory Conflict[/red]",
            border_style="red",
            padding=(1, 2)
        )
        console.print()
        console.print(error_panel)
        raise typer.Exit(1)

    setup_lines = [
        "[cyan]Projinit Project Setup[/cyan]",
        "",
        f"{'Project':<15} [green]{name}[/green]",
        f"{'Language':<15} [yellow]{outcome.language}[/yellow]",
        f"{'Target Path':<15} [dim]{path_text}[/dim]",
    ]
    console.print(Panel("\n".join(setup_lines), border_style="cyan", padding=(1, 2)))

    tracker = StepTracker("Initialize Project")
    tracker.add("name", "Project name")
    tracker.complete("name", outcome.project_name)
    tracker.add("language", "Select language")
    tracker.complete("language", outcome.language)
    for key, label in [
        ("precheck", "Check generator tool"),
        ("folder", "Create project folder"),
        ("generate", "Generate project files"),
        ("final", "Finalize"),
    ]:
        tracker.add(key, label)

    # Use transient so live tree is replaced by the final static render
    with Live(tracker.render(), console=console, refresh_per_second=8, transient=True) as live:
        tracker.attach_refresh(lambda: live.update(tracker.render()))
        try:
            initialize_project(outcome.project_name, outcome.language, project_path.parent, tracker=tracker)
            tracker.complete("final", "project ready")
        except (OSError, subprocess.CalledProcessError, ValueError) as e:
            tracker.error("final", str(e))
            console.print(Panel(f"Initialization failed: {escape(str(e))}", title="Failure", border_style="red"))
            if debug:
                _print_debug_environment()
            if _created_project_dir(tracker) and project_path.exists():
                shutil.rmtree(project_path)
            raise typer.Exit(1)

    console.print(tracker.render())
    console.print(f"\n[bold green]Created {outcome.language} project '{name}' at {path_text}[/bold green]")

    steps_lines = [
        f"1. Go to the project folder: [cyan]cd {name}[/cyan]",
        f"2. Get started: [cyan]{LANGUAGES[outcome.language].next_step}[/cyan]",
    ]
    console.print()
    console.print(Panel("\n".join(steps_lines), title="Next Steps", border_style="cyan", padding=(1, 2)))


@app.command()
def check():
    """Check which project generators are installed."""
    show_banner()
    console.print("[bold]Checking for installed generators...[/bold]\n")

    tracker = StepTracker("Check Available Generators")
    generators = {
        name: initializer for name, initializer in LANGUAGES.items()
        if isinstance(initializer, CommandInitializer)
    }
    for name, initializer in generators.items():
        tracker.add(initializer.executable, f"{initializer.executable} ({name})")

    missing = [
        initializer for initializer in generators.values()
        if not check_tool_for_tracker(initializer.executable, tracker)
    ]

    console.print(tracker.render())
    console.print("\n[bold green]Projinit CLI is ready to use![/bold green]")

    for initializer in missing:
        console.print(f"[dim]Tip: Install {initializer.executable} from {initializer.install_hint}[/dim]")
    console.print("[dim]web and cpp projects need no external tools[/dim]")


def main():
    app()


if __name__ == "__main__":
    main()
