# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""prompt_toolkit components for the interactive console.

This module provides syntax highlighting, tab completion, styling, and
the InteractiveSession class used by cli.py.
"""

from pathlib import Path
from typing import Any, Callable, Optional, Union

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import FileHistory, History, InMemoryHistory
from prompt_toolkit.lexers import Lexer
from prompt_toolkit.styles import Style

# Importing the handler registers every @command
from .commands.handler import CommandHandler  # noqa: F401
from .commands.base import COMMANDS

HISTORY_FILE = Path.home() / ".mockplc_history"

CONSOLE_STYLE = Style.from_dict(
    {
        "command": "#00aa00 bold",
        "alias": "#00aa00",
        "number": "#aa00aa",
        "option": "#ff8800",
        # Prompt - clients connected (white) vs none (gray)
        "prompt.connected": "#ffffff bold",
        "prompt.disconnected": "#888888",
    }
)


def _is_number(word: str) -> bool:
    return word.replace(".", "", 1).replace("-", "", 1).isdigit()


def make_history(history_file: Optional[Union[str, Path]] = None) -> History:
    """History backend: a file, or in-memory when None or "none"."""
    if history_file is None or str(history_file).lower() == "none":
        return InMemoryHistory()
    return FileHistory(str(history_file))


class ConsoleLexer(Lexer):
    """Syntax highlighter for console commands."""

    def lex_document(self, document):
        def get_line_tokens(line_number):
            line = document.lines[line_number]
            tokens = []
            pos = 0
            for i, word in enumerate(line.split()):
                start = line.find(word, pos)
                if start > pos:
                    tokens.append(("", line[pos:start]))

                lowered = word.lower()
                cmd = COMMANDS.lookup(word) if i == 0 else None
                if cmd is not None:
                    style = "class:command" if cmd.name == lowered else "class:alias"
                elif i > 0 and _is_number(word):
                    style = "class:number"
                elif i > 0 and lowered in ("on", "off", "help", "?"):
                    style = "class:option"
                else:
                    style = ""
                tokens.append((style, word))
                pos = start + len(word)

            if pos < len(line):
                tokens.append(("", line[pos:]))
            return tokens

        return get_line_tokens


class ConsoleCompleter(Completer):
    """Tab completion for console commands and their on/off arguments."""

    def _get_commands(self) -> list[tuple[str, str]]:
        """All command names and aliases with descriptions."""
        commands = []
        for cmd in COMMANDS:
            commands.append((cmd.name, cmd.help))
            commands += [(alias, f"Alias for {cmd.name}") for alias in cmd.aliases]
        return sorted(commands)

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        words = text.split()

        if not text or text.endswith(" "):
            word_before = ""
            completed_words = words
        else:
            word_before = words[-1] if words else ""
            completed_words = words[:-1] if words else []

        if not completed_words:
            candidates = self._get_commands()
        else:
            cmd = COMMANDS.lookup(completed_words[0])
            if cmd is None or not cmd.args:
                return
            candidates = [("help", "Show help for this command")]
            arg_index = len(completed_words) - 1
            if arg_index < len(cmd.args):
                arg = cmd.args[arg_index]
                candidates += [(word, arg.help) for word in arg.completions]

        for name, desc in candidates:
            if name.startswith(word_before.lower()):
                yield Completion(name, start_position=-len(word_before), display_meta=desc)


class InteractiveSession:
    """Manages an interactive prompt session with history.

    Usage:
        session = InteractiveSession.create(
            host="0.0.0.0",
            port=48898,
            history_file="/path/to/history",
            is_connected=lambda: bool(simulator.protocols),
        )

        async for line in session.input_loop():
            result = await handler.execute(line)
            print(f">>> {result.message}")
    """

    def __init__(
        self,
        history_file: Optional[Union[str, Path]] = None,
        get_prompt: Optional[Callable[[], Any]] = None,
        prompt_text: str = "> ",
    ):
        """Initialize the interactive session.

        Args:
            history_file: Path to history file, "none" to disable, or None for in-memory.
            get_prompt: Optional callable returning the prompt (can return FormattedText).
            prompt_text: Simple string prompt, used if get_prompt is None.
        """
        self._prompt_text = prompt_text
        self._get_prompt = get_prompt
        self.history = make_history(history_file)
        self._session = PromptSession(
            history=self.history,
            completer=ConsoleCompleter(),
            complete_while_typing=False,
            lexer=ConsoleLexer(),
            style=CONSOLE_STYLE,
            auto_suggest=AutoSuggestFromHistory(),
            enable_history_search=True,
        )

    @classmethod
    def create(
        cls,
        host: str,
        port: int,
        history_file: Optional[Union[str, Path]] = None,
        is_connected: Optional[Callable[[], bool]] = None,
    ) -> "InteractiveSession":
        """Create an InteractiveSession with the standard host:port prompt."""
        prompt_text = f"{host}:{port}> "

        get_prompt = None
        if is_connected is not None:

            def get_prompt():
                if is_connected():
                    return FormattedText([("class:prompt.connected", prompt_text)])
                return FormattedText([("class:prompt.disconnected", prompt_text)])

        return cls(history_file=history_file, get_prompt=get_prompt, prompt_text=prompt_text)

    async def prompt_async(self) -> Optional[str]:
        """Get input from the user asynchronously.

        Returns:
            The input line stripped, or None on EOF.
        """
        try:
            prompt = self._get_prompt() if self._get_prompt else self._prompt_text
            line = await self._session.prompt_async(prompt)
            return line.strip() if line else ""
        except EOFError:
            return None
        except KeyboardInterrupt:
            return ""

    async def input_loop(self, stop_check: Optional[Callable[[], bool]] = None):
        """Async generator that yields non-empty input lines until EOF.

        Args:
            stop_check: Optional callback that returns True to stop the loop.
                       Checked before each prompt.
        """
        while True:
            if stop_check and stop_check():
                break
            line = await self.prompt_async()
            if line is None:
                break
            if not line:
                continue
            yield line
