"""
dataclass_flags - bind dataclass fields to command-line flags.

Fields declare their flag through an annotation in the field metadata,
``"<name>,<default>,<help>"``. ``add_flags`` registers the flags in a
``FlagSet``, the flag set parses the command line with argparse, and
``set_from_flags`` writes the parsed values back into the dataclass.
"""

from .binder import (
    DataclassFlags,
    add_flags,
    build_field_index,
    safe_add_flags,
    safe_set_from_flags,
    set_from_flags,
)
from .errors import (
    ConversionError,
    DefaultValueError,
    DuplicateFlagError,
    FlagBindingError,
    NotARecordError,
    NotParsedError,
    TagError,
    UnsupportedTypeError,
)
from .fields import FieldKind
from .flagset import Flag, FlagSet
from .tag import TAG_KEY, Tag, parse_tag
from .values import Getter, Int64, Uint, Uint64, Value

__version__ = "1.0.0"
__all__ = [
    "TAG_KEY",
    "ConversionError",
    "DataclassFlags",
    "DefaultValueError",
    "DuplicateFlagError",
    "FieldKind",
    "Flag",
    "FlagBindingError",
    "FlagSet",
    "Getter",
    "Int64",
    "NotARecordError",
    "NotParsedError",
    "Tag",
    "TagError",
    "Uint",
    "Uint64",
    "UnsupportedTypeError",
    "Value",
    "add_flags",
    "build_field_index",
    "parse_tag",
    "safe_add_flags",
    "safe_set_from_flags",
    "set_from_flags",
]
