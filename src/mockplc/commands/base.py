# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Console command table.

Console commands are CommandHandler methods registered with @command. Every
argument is positional and is converted by its Arg; a converter raises
ArgError with the text shown above the usage line.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional


@dataclass
class CommandResult:
    """Result of executing a command."""

    success: bool
    message: str
    data: Optional[dict] = None


class ArgError(ValueError):
    """A console argument is missing, extra, or could not be converted."""


# =========================================================================
# Argument converters
# =========================================================================

def index(word: str) -> int:
    """1-based module or sensor index."""
    try:
        value = int(word)
    except ValueError:
        raise ArgError(f"'{word}' is not an index")
    if value < 1:
        raise ArgError(f"'{word}' must be 1 or more")
    return value


def milliseconds(word: str) -> int:
    try:
        value = int(word)
    except ValueError:
        raise ArgError(f"'{word}' is not a whole number of milliseconds")
    if value <= 0:
        raise ArgError(f"'{word}' must be greater than 0ms")
    return value


def number(word: str) -> float:
    """Finite float, as written to a sensor."""
    try:
        value = float(word)
    except ValueError:
        raise ArgError(f"'{word}' is not a number")
    if not math.isfinite(value):
        raise ArgError(f"'{word}' is not a finite number")
    return value


def on_off(word: str) -> bool:
    lowered = word.lower()
    if lowered in ("on", "true", "yes", "1"):
        return True
    if lowered in ("off", "false", "no", "0"):
        return False
    raise ArgError(f"'{word}' is not on or off")


@dataclass(frozen=True)
class Arg:
    """One positional console argument."""

    name: str
    convert: Callable[[str], Any]
    help: str = ""
    optional: bool = False
    default: Any = None
    # Shown in usage instead of the name, e.g. "on|off"
    hint: Optional[str] = None
    completions: tuple[str, ...] = ()

    @property
    def usage(self) -> str:
        inner = self.hint or self.name
        return f"[{inner}]" if self.optional else f"<{inner}>"


MODULE = Arg("module", index, "Module index, from 1")
SENSOR = Arg("sensor", index, "Sensor index within the module, from 1")


@dataclass
class ConsoleCommand:
    """A registered console command."""

    name: str
    method: str
    help: str
    category: str
    aliases: tuple[str, ...] = ()
    args: tuple[Arg, ...] = ()

    @property
    def usage(self) -> str:
        return " ".join(arg.usage for arg in self.args)

    def bind(self, words: list[str]) -> list:
        """Convert argument words into positional values.

        Raises:
            ArgError: on a missing, extra or unconvertible argument.
        """
        if len(words) > len(self.args):
            raise ArgError("Too many arguments")
        values = []
        for i, arg in enumerate(self.args):
            if i < len(words):
                values.append(arg.convert(words[i]))
            elif arg.optional:
                values.append(arg.default)
            else:
                raise ArgError(f"Missing required argument: {arg.name}")
        return values

    def describe(self) -> str:
        """Usage line, help text and one line per argument."""
        lines = [f"{self.name} {self.usage}".rstrip(), "", self.help]
        if self.aliases:
            lines.append(f"Aliases: {', '.join(self.aliases)}")
        if self.args:
            lines += ["", "Arguments:"]
        for arg in self.args:
            detail = f"optional, default {arg.default}" if arg.optional else "required"
            lines.append(f"  {arg.name}: {arg.help} [{detail}]")
        return "\n".join(lines)


class CommandTable:
    """Console commands by name and alias, in registration order."""

    def __init__(self):
        self._commands: list[ConsoleCommand] = []
        self._by_word: dict[str, ConsoleCommand] = {}

    def register(
        self,
        name: str,
        *aliases: str,
        help: str,
        category: str,
        args: tuple[Arg, ...] = (),
    ):
        """Decorator registering a handler method as a console command."""

        def decorator(func: Callable) -> Callable:
            cmd = ConsoleCommand(
                name=name,
                method=func.__name__,
                help=help,
                category=category,
                aliases=aliases,
                args=tuple(args),
            )
            self._commands.append(cmd)
            for word in (name, *aliases):
                self._by_word[word] = cmd
            return func

        return decorator

    def lookup(self, word: str) -> Optional[ConsoleCommand]:
        return self._by_word.get(word.lower())

    def words(self) -> list[str]:
        """Every command name and alias."""
        return list(self._by_word)

    def __iter__(self) -> Iterator[ConsoleCommand]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)


COMMANDS = CommandTable()
command = COMMANDS.register
