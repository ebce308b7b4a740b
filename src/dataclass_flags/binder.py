"""
Binding of dataclass fields to flags.

Fields opt in through an annotation stored in their metadata::

    @dataclass
    class Config:
        port: int = field(default=0, metadata={"flag": "port,8080,port to listen on"})
        timeout: timedelta = field(
            default=timedelta(0), metadata={"flag": "timeout,5s,request timeout"}
        )

:func:`add_flags` registers one flag per annotated field, the flag set then
parses the command line, and :func:`set_from_flags` copies the parsed values
back into the dataclass.
"""

import argparse
import dataclasses
import datetime
import logging
from typing import Any, Optional

from result import Err, Ok, Result

from .errors import (
    ConversionError,
    DefaultValueError,
    DuplicateFlagError,
    FlagBindingError,
    NotARecordError,
    NotParsedError,
    UnsupportedTypeError,
)
from .fields import (
    FieldDescriptor,
    FieldKind,
    FieldPath,
    coerce_value,
    current_value,
    field_kind,
    is_zero,
    iter_fields,
    type_name,
    unwrap_optional,
)
from .flagset import Flag, FlagSet
from .tag import TAG_KEY, parse_tag

logger = logging.getLogger(__name__)

_DEFINERS = {
    FieldKind.BOOL: lambda fs, name, usage: fs.define_bool(name, False, usage),
    FieldKind.INT: lambda fs, name, usage: fs.define_int(name, 0, usage),
    FieldKind.INT64: lambda fs, name, usage: fs.define_int64(name, 0, usage),
    FieldKind.UINT: lambda fs, name, usage: fs.define_uint(name, 0, usage),
    FieldKind.UINT64: lambda fs, name, usage: fs.define_uint64(name, 0, usage),
    FieldKind.FLOAT: lambda fs, name, usage: fs.define_float(name, 0.0, usage),
    FieldKind.STRING: lambda fs, name, usage: fs.define_string(name, "", usage),
    FieldKind.DURATION: lambda fs, name, usage: fs.define_duration(
        name, datetime.timedelta(0), usage
    ),
}


def _record_type(record: Any) -> type:
    """Return the dataclass type of a dataclass instance or type."""
    if not dataclasses.is_dataclass(record):
        raise NotARecordError(
            f"expected a dataclass, got {type(record).__name__!r}"
        )
    return record if isinstance(record, type) else type(record)


def add_flags(fs: FlagSet, record: Any, *, tag_key: str = TAG_KEY) -> None:
    """
    Define a flag in ``fs`` for every annotated field of ``record``.

    Nested dataclass fields without an annotation are walked into, so their
    annotated fields get flags named by their own annotations. The record is
    only inspected, never modified.

    Args:
        fs: The flag set to define flags in.
        record: A dataclass instance or type.
        tag_key: The metadata key holding the flag annotation.

    Raises:
        NotARecordError: If ``record`` is not a dataclass.
        TagError: If an annotation is malformed.
        DuplicateFlagError: If a flag with the same name is already defined.
        UnsupportedTypeError: If an annotated field has no flag representation.
        DefaultValueError: If an annotation's default does not parse.
    """
    cls = _record_type(record)
    for descriptor in iter_fields(cls, tag_key):
        _add_flag(fs, descriptor)


def _add_flag(fs: FlagSet, descriptor: FieldDescriptor) -> None:
    name, default, usage = parse_tag(descriptor.tag)
    if fs.lookup(name) is not None:
        raise DuplicateFlagError(f"flag {name!r} already defined")

    kind = field_kind(descriptor.type, name)
    if kind is FieldKind.CUSTOM:
        value_type = unwrap_optional(descriptor.type)
        try:
            value = value_type()
        except TypeError as e:
            raise UnsupportedTypeError(
                f"invalid type {type_name(value_type)!r} for flag {name!r}: "
                f"cannot create a zero value ({e})"
            ) from e
        fs.var(value, name, usage)
    else:
        _DEFINERS[kind](fs, name, usage)

    flag = fs.lookup(name)
    if default:
        try:
            flag.value.set(default)
        except (TypeError, ValueError) as e:
            raise DefaultValueError(
                f"invalid default value {default!r} for flag {name!r}: {e}"
            ) from e
        flag.def_value = str(flag.value)
    logger.debug(
        "registered %s flag %s for field %s (default %r)",
        kind.value,
        name,
        ".".join(descriptor.path),
        flag.def_value,
    )


def _index_fields(cls: type, tag_key: str) -> dict[str, FieldDescriptor]:
    indexed: dict[str, FieldDescriptor] = {}
    for descriptor in iter_fields(cls, tag_key):
        name = parse_tag(descriptor.tag).name
        if name in indexed:
            raise DuplicateFlagError(f"duplicate flag {name!r}")
        indexed[name] = descriptor
    return indexed


def build_field_index(record: Any, *, tag_key: str = TAG_KEY) -> dict[str, FieldPath]:
    """
    Map every flag name of ``record`` to the path of its field.

    Raises:
        NotARecordError: If ``record`` is not a dataclass.
        TagError: If an annotation is malformed.
        DuplicateFlagError: If two fields use the same flag name.
    """
    cls = _record_type(record)
    return {
        name: descriptor.path
        for name, descriptor in _index_fields(cls, tag_key).items()
    }


def _resolve_parent(record: Any, path: FieldPath) -> Any:
    parent = record
    for depth, attr in enumerate(path[:-1]):
        parent = getattr(parent, attr)
        if parent is None:
            raise ConversionError(
                f"nested dataclass {'.'.join(path[: depth + 1])!r} is not set"
            )
    return parent


def set_from_flags(record: Any, fs: FlagSet, *, tag_key: str = TAG_KEY) -> None:
    """
    Copy the values of parsed flags into the fields of ``record``.

    Flags that are not bound to a field of ``record`` are ignored, so one flag
    set can serve several dataclasses. A field that already holds a non-zero
    value keeps it when its flag was not given on the command line and is
    still at its default.

    Raises:
        NotParsedError: If ``fs`` has not been parsed yet.
        NotARecordError: If ``record`` is not a dataclass instance.
        DuplicateFlagError: If two fields use the same flag name.
        ConversionError: If a flag value does not fit the field type.
    """
    if not fs.parsed:
        raise NotParsedError("flags not parsed")
    if isinstance(record, type) or not dataclasses.is_dataclass(record):
        raise NotARecordError(
            f"expected a dataclass instance, got {type(record).__name__!r}"
        )

    fields = _index_fields(type(record), tag_key)
    explicit: set[str] = set()
    fs.visit(lambda flag: explicit.add(flag.name))

    def assign(flag: Flag) -> None:
        descriptor = fields.get(flag.name)
        if descriptor is None:
            return
        parent = _resolve_parent(record, descriptor.path)
        attr = descriptor.path[-1]
        if (
            not is_zero(getattr(parent, attr))
            and str(flag.value) == flag.def_value
            and flag.name not in explicit
        ):
            logger.debug("keeping preset value of %s", ".".join(descriptor.path))
            return
        value = coerce_value(current_value(flag.value), descriptor.type, flag.name)
        setattr(parent, attr, value)
        logger.debug("set %s from flag %s", ".".join(descriptor.path), flag.name)

    fs.visit_all(assign)


def safe_add_flags(
    fs: FlagSet, record: Any, *, tag_key: str = TAG_KEY
) -> Result[None, str]:
    """Like :func:`add_flags`, but returns ``Err(message)`` instead of raising."""
    try:
        add_flags(fs, record, tag_key=tag_key)
        return Ok(None)
    except FlagBindingError as e:
        return Err(str(e))


def safe_set_from_flags(
    record: Any, fs: FlagSet, *, tag_key: str = TAG_KEY
) -> Result[None, str]:
    """Like :func:`set_from_flags`, but returns ``Err(message)`` instead of raising."""
    try:
        set_from_flags(record, fs, tag_key=tag_key)
        return Ok(None)
    except FlagBindingError as e:
        return Err(str(e))


class DataclassFlags:
    """
    Command-line flags generated from annotated dataclass instances.

    Flags are registered when the object is created; :meth:`parse` parses the
    command line and writes the results into every dataclass.

    Example:
        @dataclass
        class Config:
            name: str = field(default="", metadata={"flag": "name,test,The name to use"})
            count: int = field(default=0, metadata={"flag": "count,5,Number of items"})

        config = Config()
        flags = DataclassFlags(config)
        result = flags.parse(["--count", "7"])
        result["Config"] is config  # True, config.count == 7
    """

    def __init__(
        self,
        *records: Any,
        flagset: Optional[FlagSet] = None,
        tag_key: str = TAG_KEY,
        prog: Optional[str] = None,
    ) -> None:
        """
        Args:
            *records: One or more dataclass instances to bind.
            flagset: Flag set to register into. A new one is created if omitted.
            tag_key: The metadata key holding the flag annotation.
            prog: Program name shown in usage text of a newly created flag set.
        """
        for record in records:
            if isinstance(record, type) or not dataclasses.is_dataclass(record):
                raise NotARecordError(
                    f"expected a dataclass instance, got {type(record).__name__!r}"
                )
        self.records: tuple[Any, ...] = records
        self.flagset: FlagSet = flagset if flagset is not None else FlagSet(prog)
        self.tag_key = tag_key
        for record in records:
            add_flags(self.flagset, record, tag_key=tag_key)

    def parse(self, args: Optional[list[str]] = None) -> dict[str, Any]:
        """
        Parse command-line arguments and update the bound dataclasses.

        Args:
            args (Optional[list[str]]): Arguments to parse. If None, uses sys.argv.

        Returns:
            dict[str, Any]: Dict mapping dataclass names to the updated instances.
        """
        self.flagset.parse(args)
        result = {}
        for record in self.records:
            set_from_flags(record, self.flagset, tag_key=self.tag_key)
            result[type(record).__name__] = record
        return result

    def safe_parse(self, args: Optional[list[str]] = None) -> Result[dict[str, Any], str]:
        """
        Like :meth:`parse`, but returns ``Err(message)`` on failure.

        Invalid flag values only produce an ``Err`` when the flag set was
        created with ``exit_on_error=False``; otherwise argparse exits.
        """
        try:
            return Ok(self.parse(args))
        except (FlagBindingError, argparse.ArgumentError) as e:
            return Err(str(e))

    def format_help(self) -> str:
        return self.flagset.format_help()
