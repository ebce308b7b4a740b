"""
Flag value cells.

A flag stores its current value in a cell implementing the :class:`Value`
protocol: ``set`` parses a command-line string into the cell and ``__str__``
renders it back. Cells that also implement ``get`` (the :class:`Getter`
protocol) expose their current value as a plain Python object, which is what
gets written into dataclass fields.

Field types that are not one of the built-in kinds may implement the same
protocol to be usable as flags.
"""

import datetime
import re
from decimal import Decimal
from typing import Any, NewType, Protocol, runtime_checkable

# Width markers for integer fields. At runtime they are plain ints; as type
# hints they select the flag kind (e.g. ``retries: Uint = field(...)``).
Int64 = NewType("Int64", int)
Uint = NewType("Uint", int)
Uint64 = NewType("Uint64", int)


@runtime_checkable
class Value(Protocol):
    """A settable, printable flag value."""

    def set(self, text: str) -> None: ...

    def __str__(self) -> str: ...


@runtime_checkable
class Getter(Value, Protocol):
    """A :class:`Value` that can also return its current value."""

    def get(self) -> Any: ...


def parse_bool(value: str) -> bool:
    """
    Parse a string to a boolean value strictly.

    Accepts 1, t, T, TRUE, true, True and 0, f, F, FALSE, false, False.
    Raises ValueError for any other string.
    """
    if value in ("1", "t", "T", "TRUE", "true", "True"):
        return True
    elif value in ("0", "f", "F", "FALSE", "false", "False"):
        return False
    else:
        raise ValueError(f"parsing {value!r}: invalid syntax")


_LEGACY_OCTAL = re.compile(r"[+-]?0[0-7_]+")


def parse_int(value: str, bits: int = 64, signed: bool = True) -> int:
    """
    Parse an integer literal the way command-line flags expect it.

    Base prefixes 0x, 0o and 0b are honoured, and a bare leading zero means
    octal ("010" == 8). The result must fit in ``bits`` bits.
    """
    if value != value.strip():
        raise ValueError(f"parsing {value!r}: invalid syntax")
    try:
        if _LEGACY_OCTAL.fullmatch(value):
            number = int(value, 8)
        else:
            number = int(value, 0)
    except ValueError:
        raise ValueError(f"parsing {value!r}: invalid syntax") from None

    if signed:
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    else:
        if value.startswith("-"):
            raise ValueError(f"parsing {value!r}: invalid syntax")
        low, high = 0, (1 << bits) - 1
    if not low <= number <= high:
        raise ValueError(f"parsing {value!r}: value out of range")
    return number


def parse_float(value: str) -> float:
    if value != value.strip():
        raise ValueError(f"parsing {value!r}: invalid syntax")
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"parsing {value!r}: invalid syntax") from None


# Unit sizes in microseconds, the resolution of datetime.timedelta.
_DURATION_UNITS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),  # U+00B5 micro sign
    "μs": Decimal(1),  # U+03BC greek mu
    "ms": Decimal(1_000),
    "s": Decimal(1_000_000),
    "m": Decimal(60_000_000),
    "h": Decimal(3_600_000_000),
}
_DURATION_TERM = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: str) -> datetime.timedelta:
    """
    Parse a duration such as "300ms", "-1.5h" or "2h45m".

    A duration is an optionally signed sequence of decimal numbers, each with
    an optional fraction and a unit suffix. "0" is accepted without a unit.
    """
    text = value
    sign = 1
    if text and text[0] in "+-":
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return datetime.timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _DURATION_TERM.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        total += Decimal(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return datetime.timedelta(microseconds=sign * round(total))


def _format_fraction(amount: int, unit: int) -> str:
    whole, frac = divmod(amount, unit)
    if not frac:
        return str(whole)
    width = len(str(unit)) - 1
    return f"{whole}.{str(frac).rjust(width, '0').rstrip('0')}"


def format_duration(value: datetime.timedelta) -> str:
    """
    Render a duration in canonical form: "1h30m0s", "1.5s", "250ms", "0s".

    The output always parses back to the same duration.
    """
    micros = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_format_fraction(micros, 1_000)}ms"

    hours, rest = divmod(micros, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return f"{out}{_format_fraction(rest, 1_000_000)}s"


class _TypedValue:
    """Shared behaviour of the built-in value cells."""

    type_name = "value"

    def __init__(self, value: Any) -> None:
        self.value = value

    def get(self) -> Any:
        return self.value

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class BoolValue(_TypedValue):
    type_name = "bool"
    # Bool flags may be given without a value on the command line.
    is_bool_flag = True

    def set(self, text: str) -> None:
        self.value = parse_bool(text)

    def __str__(self) -> str:
        return "true" if self.value else "false"


class IntValue(_TypedValue):
    type_name = "int"
    bits = 64
    signed = True

    def set(self, text: str) -> None:
        self.value = parse_int(text, self.bits, self.signed)


class Int64Value(IntValue):
    pass


class UintValue(IntValue):
    type_name = "uint"
    signed = False


class Uint64Value(UintValue):
    pass


class FloatValue(_TypedValue):
    type_name = "float"

    def set(self, text: str) -> None:
        self.value = parse_float(text)


class StringValue(_TypedValue):
    type_name = "string"

    def set(self, text: str) -> None:
        self.value = text


class DurationValue(_TypedValue):
    type_name = "duration"

    def set(self, text: str) -> None:
        self.value = parse_duration(text)

    def __str__(self) -> str:
        return format_duration(self.value)
