"""
A named set of flags parsed with argparse.

``FlagSet`` stores flag definitions with their value cells and canonical
default strings, remembers which flags were explicitly given on the command
line, and leaves tokenization, usage text and error reporting to
``argparse.ArgumentParser``.
"""

import argparse
import dataclasses
import datetime
import logging
import sys
from typing import Callable, Optional

from .errors import DuplicateFlagError
from .values import (
    BoolValue,
    DurationValue,
    FloatValue,
    Int64Value,
    IntValue,
    StringValue,
    Uint64Value,
    UintValue,
    Value,
)

logger = logging.getLogger(__name__)

# Defaults that are not worth mentioning in help output.
_ZERO_DEFAULTS = ("", "0", "0.0", "false", "0s")


@dataclasses.dataclass
class Flag:
    """A single flag: its name, help text, value cell and canonical default."""

    name: str
    usage: str
    value: Value
    def_value: str


def _is_bool_flag(flag: Flag) -> bool:
    return getattr(flag.value, "is_bool_flag", False)


class _SetFlagAction(argparse.Action):
    """Routes every occurrence of a flag through ``FlagSet.set``."""

    def __init__(self, option_strings, dest, flagset, **kwargs):
        self.flagset = flagset
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        try:
            self.flagset.set(self.dest, values)
        except ValueError as e:
            raise argparse.ArgumentError(self, f"invalid value {values!r}: {e}")


class FlagSet:
    """
    A registry of flags.

    Example:
        fs = FlagSet("server")
        port = fs.define_int("port", 8080, "port to listen on")
        fs.parse(["--port", "9000"])
        port.get()  # 9000
    """

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        exit_on_error: bool = True,
    ) -> None:
        self.name = name
        self.description = description
        self.exit_on_error = exit_on_error
        self._formal: dict[str, Flag] = {}
        self._actual: dict[str, Flag] = {}
        self._args: list[str] = []
        self._parsed = False

    @property
    def parsed(self) -> bool:
        """Whether ``parse`` has completed."""
        return self._parsed

    def lookup(self, name: str) -> Optional[Flag]:
        return self._formal.get(name)

    def var(self, value: Value, name: str, usage: str) -> Flag:
        """
        Define a flag backed by an arbitrary value cell.

        The cell's current string form becomes the flag's default.

        Raises:
            DuplicateFlagError: If a flag with this name already exists.
        """
        if name in self._formal:
            raise DuplicateFlagError(f"flag redefined: {name}")
        flag = Flag(name=name, usage=usage, value=value, def_value=str(value))
        self._formal[name] = flag
        logger.debug("defined flag %s (default %r)", name, flag.def_value)
        return flag

    def define_bool(self, name: str, default: bool, usage: str) -> BoolValue:
        value = BoolValue(default)
        self.var(value, name, usage)
        return value

    def define_int(self, name: str, default: int, usage: str) -> IntValue:
        value = IntValue(default)
        self.var(value, name, usage)
        return value

    def define_int64(self, name: str, default: int, usage: str) -> Int64Value:
        value = Int64Value(default)
        self.var(value, name, usage)
        return value

    def define_uint(self, name: str, default: int, usage: str) -> UintValue:
        value = UintValue(default)
        self.var(value, name, usage)
        return value

    def define_uint64(self, name: str, default: int, usage: str) -> Uint64Value:
        value = Uint64Value(default)
        self.var(value, name, usage)
        return value

    def define_float(self, name: str, default: float, usage: str) -> FloatValue:
        value = FloatValue(default)
        self.var(value, name, usage)
        return value

    def define_string(self, name: str, default: str, usage: str) -> StringValue:
        value = StringValue(default)
        self.var(value, name, usage)
        return value

    def define_duration(
        self, name: str, default: datetime.timedelta, usage: str
    ) -> DurationValue:
        value = DurationValue(default)
        self.var(value, name, usage)
        return value

    def set(self, name: str, text: str) -> None:
        """
        Set a flag from its string form and mark it as explicitly given.

        Raises:
            ValueError: If there is no such flag or the text does not parse.
        """
        flag = self._formal.get(name)
        if flag is None:
            raise ValueError(f"no such flag --{name}")
        flag.value.set(text)
        self._actual[name] = flag

    def visit_all(self, fn: Callable[[Flag], None]) -> None:
        """Call ``fn`` for every defined flag, in name order."""
        for name in sorted(self._formal):
            fn(self._formal[name])

    def visit(self, fn: Callable[[Flag], None]) -> None:
        """Call ``fn`` for every flag that was explicitly set, in name order."""
        for name in sorted(self._actual):
            fn(self._actual[name])

    def args(self) -> list[str]:
        """Positional arguments left over after parsing."""
        return list(self._args)

    def _format_usage(self, flag: Flag) -> str:
        if flag.def_value in _ZERO_DEFAULTS:
            text = flag.usage
        else:
            default_suffix = f"(default: {flag.def_value})"
            text = f"{flag.usage} {default_suffix}" if flag.usage else default_suffix
        # argparse applies %-formatting to help strings
        return text.replace("%", "%%")

    def build_parser(self) -> argparse.ArgumentParser:
        """
        Build an argparse parser exposing every defined flag as ``--name``.

        The automatic ``-h/--help`` option is left out when a flag named
        ``help`` is defined.
        """
        parser = argparse.ArgumentParser(
            prog=self.name,
            description=self.description,
            add_help="help" not in self._formal,
            allow_abbrev=False,
            exit_on_error=self.exit_on_error,
        )
        for name in sorted(self._formal):
            flag = self._formal[name]
            kwargs = {
                "action": _SetFlagAction,
                "flagset": self,
                "dest": name,
                "default": argparse.SUPPRESS,
                "help": self._format_usage(flag),
                "metavar": getattr(flag.value, "type_name", "value").upper(),
            }
            if _is_bool_flag(flag):
                # Only reached with --name=value; see _split_arguments.
                kwargs.update(nargs="?", const="true")
            parser.add_argument(f"--{name}", **kwargs)
        return parser

    def _split_arguments(self, arguments: list[str]) -> tuple[list[str], list[str]]:
        """
        Separate the flag arguments from the positional ones.

        Flag parsing stops at the first argument that is not a flag, or just
        after "--". Values given as a separate argument are joined to their
        flag (``--port 80`` becomes ``--port=80``), so a bool flag never takes
        the following argument as its value.
        """
        flags = []
        i = 0
        while i < len(arguments):
            arg = arguments[i]
            if arg == "--":
                return flags, arguments[i + 1 :]
            if len(arg) < 2 or not arg.startswith("-"):
                break
            i += 1
            name = arg[2:] if arg.startswith("--") else None
            flag = self._formal.get(name) if name else None
            if flag is not None and not _is_bool_flag(flag) and i < len(arguments):
                flags.append(f"{arg}={arguments[i]}")
                i += 1
            else:
                flags.append(arg)
        return flags, arguments[i:]

    def parse(self, arguments: Optional[list[str]] = None) -> None:
        """
        Parse command-line arguments into the defined flags.

        Flags come first; everything from the first non-flag argument (or
        after "--") on is available from :meth:`args`.

        Args:
            arguments: Argument list without the program name. If None, uses sys.argv.

        Raises:
            SystemExit: On invalid input, unless ``exit_on_error`` is False.
            argparse.ArgumentError: On an invalid flag value when ``exit_on_error`` is False.
        """
        if arguments is None:
            arguments = sys.argv[1:]
        flags, positional = self._split_arguments(list(arguments))
        self.build_parser().parse_args(flags)
        self._args = positional
        self._parsed = True
        logger.debug("parsed flags, explicitly set: %s", sorted(self._actual))

    def format_help(self) -> str:
        return self.build_parser().format_help()
