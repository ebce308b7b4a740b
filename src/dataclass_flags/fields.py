"""
Dataclass field traversal and type dispatch.

Registration and indexing both walk a dataclass with :func:`iter_fields`, so
they always agree on which fields are flags and which nested dataclasses are
descended into.
"""

import copy
import dataclasses
import datetime
import enum
import types
import typing
from typing import Any, Iterator, Optional, Union

from .errors import ConversionError, UnsupportedTypeError
from .tag import TAG_KEY
from .values import Int64, Uint, Uint64, Value

# Names of the fields leading from the root record to a field.
FieldPath = tuple[str, ...]


class FieldKind(enum.Enum):
    """The kind of flag a field is registered as."""

    BOOL = "bool"
    INT = "int"
    INT64 = "int64"
    UINT = "uint"
    UINT64 = "uint64"
    FLOAT = "float"
    STRING = "string"
    DURATION = "duration"
    CUSTOM = "custom"


_BUILTIN_KINDS: dict[Any, FieldKind] = {
    bool: FieldKind.BOOL,
    int: FieldKind.INT,
    Int64: FieldKind.INT64,
    Uint: FieldKind.UINT,
    Uint64: FieldKind.UINT64,
    float: FieldKind.FLOAT,
    str: FieldKind.STRING,
    datetime.timedelta: FieldKind.DURATION,
}


@dataclasses.dataclass(frozen=True)
class FieldDescriptor:
    """An annotated field found while walking a dataclass."""

    name: str
    path: FieldPath
    type: Any
    tag: str


def _get_optional_inner_type(type_hint: Any) -> Optional[Any]:
    """
    If type_hint is Optional[T] (i.e., Union[T, None] or T | None), return T.
    Otherwise, return None.
    """
    if typing.get_origin(type_hint) in (Union, types.UnionType):
        args = typing.get_args(type_hint)
        non_none_args = [a for a in args if a is not type(None)]
        if len(non_none_args) == 1 and type(None) in args:
            return non_none_args[0]
    return None


def unwrap_optional(type_hint: Any) -> Any:
    """Return T for Optional[T], and any other hint unchanged."""
    inner = _get_optional_inner_type(type_hint)
    return type_hint if inner is None else inner


def runtime_type(type_hint: Any) -> Any:
    """Follow NewType markers down to the class values actually have."""
    while hasattr(type_hint, "__supertype__"):
        type_hint = type_hint.__supertype__
    return type_hint


def is_record_type(type_hint: Any) -> bool:
    """Whether a type hint names a dataclass that can be walked into."""
    return (
        isinstance(type_hint, type)
        and typing.get_origin(type_hint) is None
        and dataclasses.is_dataclass(type_hint)
    )


def type_name(type_hint: Any) -> str:
    """Short printable name of a type hint, for error messages."""
    return getattr(type_hint, "__name__", None) or str(type_hint)


def _local_namespace(cls: type) -> dict[str, Any]:
    """
    Names a dataclass can refer to besides its module globals.

    Classes defined inside a function are not reachable from module globals,
    but the class itself and the types of its field defaults are known.
    """
    namespace: dict[str, Any] = {cls.__name__: cls}
    for field in dataclasses.fields(cls):
        candidates = [field.default_factory]
        if field.default is not dataclasses.MISSING and field.default is not None:
            candidates.append(type(field.default))
        for candidate in candidates:
            if isinstance(candidate, type):
                namespace.setdefault(candidate.__name__, candidate)
    return namespace


def _resolve_field_type(cls: type, field: dataclasses.Field, localns: dict) -> Any:
    hint = field.type
    if isinstance(hint, typing.ForwardRef):
        hint = hint.__forward_arg__
    if not isinstance(hint, str):
        return hint
    holder = type(
        cls.__name__,
        (),
        {"__annotations__": {field.name: hint}, "__module__": cls.__module__},
    )
    try:
        return typing.get_type_hints(holder, localns=localns)[field.name]
    except NameError:
        # Left as a string: ignored when unannotated, rejected by field_kind otherwise.
        return hint


def field_types(cls: type) -> dict[str, Any]:
    """
    Resolve the declared type of every field of a dataclass.

    String annotations (``from __future__ import annotations`` or forward
    references) are evaluated against the module globals and the names from
    ``_local_namespace``. A field whose annotation cannot be resolved keeps
    its annotation string.
    """
    localns = _local_namespace(cls)
    try:
        return typing.get_type_hints(cls, localns=localns)
    except NameError:
        return {
            field.name: _resolve_field_type(cls, field, localns)
            for field in dataclasses.fields(cls)
        }


def iter_fields(
    cls: type,
    tag_key: str = TAG_KEY,
    prefix: FieldPath = (),
    _walking: tuple[type, ...] = (),
) -> Iterator[FieldDescriptor]:
    """
    Yield every annotated field of a dataclass, depth first.

    Fields whose name starts with an underscore are private and skipped. A
    field without an annotation is descended into when its type is itself a
    dataclass and ignored otherwise; annotated fields are never descended
    into.

    Args:
        cls: The dataclass type to walk.
        tag_key: The metadata key holding the flag annotation.
        prefix: Path of ``cls`` inside the root dataclass.

    Raises:
        UnsupportedTypeError: If an unannotated field leads back to a
            dataclass that is already being walked.
    """
    walking = _walking + (cls,)
    hints = field_types(cls)
    for field in dataclasses.fields(cls):
        if field.name.startswith("_"):
            continue
        path = prefix + (field.name,)
        field_type = hints.get(field.name, field.type)
        tag = field.metadata.get(tag_key)
        if not tag:
            if is_record_type(field_type):
                if field_type in walking:
                    raise UnsupportedTypeError(
                        f"recursive dataclass {type_name(field_type)!r} "
                        f"at field {'.'.join(path)!r}"
                    )
                yield from iter_fields(field_type, tag_key, path, walking)
            continue
        yield FieldDescriptor(name=field.name, path=path, type=field_type, tag=tag)


def _is_custom_value_type(type_hint: Any) -> bool:
    # get_origin filters out generic aliases such as list[int], which pass
    # isinstance(..., type) on some interpreters but reject issubclass.
    return (
        isinstance(type_hint, type)
        and typing.get_origin(type_hint) is None
        and type_hint not in _BUILTIN_KINDS
        and issubclass(type_hint, Value)
    )


def field_kind(type_hint: Any, flag_name: str) -> FieldKind:
    """
    Decide how a field of the given type is registered as a flag.

    One level of Optional is looked through. Types implementing the
    :class:`~dataclass_flags.values.Value` protocol are custom flags.

    Raises:
        UnsupportedTypeError: If the type has no flag representation.
    """
    target = unwrap_optional(type_hint)
    if isinstance(target, str):
        raise UnsupportedTypeError(
            f"cannot resolve type {target!r} for flag {flag_name!r}"
        )
    if _is_custom_value_type(target):
        return FieldKind.CUSTOM
    try:
        return _BUILTIN_KINDS[target]
    except (KeyError, TypeError):
        # TypeError: unhashable hints
        raise UnsupportedTypeError(
            f"invalid type {type_name(target)!r} for flag {flag_name!r}: it doesn't "
            "implement the Value protocol and is not a built-in flag type"
        ) from None


def is_zero(value: Any) -> bool:
    """Whether a field still holds the zero value of its type."""
    if value is None:
        return True
    if isinstance(value, (bool, int, float, str, bytes, datetime.timedelta)):
        return not value
    try:
        zero = type(value)()
    except TypeError:
        return False
    return value == zero


def coerce_value(value: Any, type_hint: Any, flag_name: str) -> Any:
    """
    Adapt a flag value to the declared type of its field.

    Values that already are instances of the field type (after unwrapping
    Optional and NewType) pass through unchanged; anything else is converted
    by calling the field type on it.

    Raises:
        ConversionError: If the conversion fails.
    """
    target = runtime_type(unwrap_optional(type_hint))
    if not isinstance(target, type) or isinstance(value, target):
        return value
    try:
        return target(value)
    except (TypeError, ValueError) as e:
        raise ConversionError(
            f"cannot assign value {value!r} of type {type(value).__name__!r} "
            f"from flag {flag_name!r} to field of type {type_name(target)!r}: {e}"
        ) from e


def current_value(cell: Value) -> Any:
    """Return what a flag's value cell currently holds."""
    getter = getattr(cell, "get", None)
    if callable(getter):
        return getter()
    return copy.copy(cell)
