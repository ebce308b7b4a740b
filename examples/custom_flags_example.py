#!/usr/bin/env python3
"""
Example demonstrating custom flag value types and a shared flag set.

A field type becomes usable as a flag by implementing ``set(text)`` and
``__str__``. The example also registers a plain flag directly on the
``FlagSet`` next to the dataclass-generated ones, and binds two unrelated
dataclasses to the same flag set.
"""

from dataclasses import dataclass, field

from dataclass_flags import FlagSet, add_flags, set_from_flags


class LogLevel:
    """A log level flag value."""

    LEVELS = ("debug", "info", "warning", "error")

    def __init__(self) -> None:
        self.level = ""

    def set(self, text: str) -> None:
        if text.lower() not in self.LEVELS:
            raise ValueError(f"must be one of {', '.join(self.LEVELS)}")
        self.level = text.lower()

    def __str__(self) -> str:
        return self.level

    # A field equal to LogLevel() counts as unset and receives the default.
    def __eq__(self, other):
        return isinstance(other, LogLevel) and other.level == self.level


@dataclass
class AppConfig:
    name: str = field(default="", metadata={"flag": "name,example,Application name"})
    repeats: int = field(default=0, metadata={"flag": "repeats,1,Number of repeats"})
    log_level: LogLevel = field(
        default_factory=LogLevel, metadata={"flag": "log-level,info,Log verbosity"}
    )


@dataclass
class OutputConfig:
    path: str = field(default="", metadata={"flag": "out,-,Output file"})


if __name__ == "__main__":
    app = AppConfig()
    output = OutputConfig()

    fs = FlagSet("custom-flags")
    quiet = fs.define_bool("quiet", False, "Quiet mode")
    add_flags(fs, app)
    add_flags(fs, output)

    # Simulate parsing arguments (replace with `None` to use CLI args)
    fs.parse(["--log-level", "DEBUG", "--repeats", "3", "--quiet"])
    set_from_flags(app, fs)
    set_from_flags(output, fs)

    print("Dataclass result:")
    print(f"  name: {app.name}")
    print(f"  repeats: {app.repeats}")
    print(f"  log level: {app.log_level}")
    print(f"  output: {output.path}")
    print("Other flags:")
    print(f"  quiet: {quiet.get()}")
