"""Exceptions raised while binding dataclass fields to flags.

Every error here is a configuration mistake in the dataclass definition or
in the order of calls, so none of them are caught by the library itself.
Each class also derives from the built-in exception a caller would naturally
expect (``ValueError``, ``TypeError`` or ``RuntimeError``).
"""


class FlagBindingError(Exception):
    """Base class for all dataclass_flags errors."""


class TagError(FlagBindingError, ValueError):
    """A flag annotation does not have exactly three segments."""


class NotARecordError(FlagBindingError, TypeError):
    """The root value is not a dataclass instance."""


class DuplicateFlagError(FlagBindingError, ValueError):
    """Two fields (or two definitions) use the same flag name."""


class UnsupportedTypeError(FlagBindingError, TypeError):
    """An annotated field has a type that cannot be represented as a flag."""


class DefaultValueError(FlagBindingError, ValueError):
    """The default segment of an annotation does not parse for the field type."""


class NotParsedError(FlagBindingError, RuntimeError):
    """Values were read back before the flag set parsed the command line."""


class ConversionError(FlagBindingError, TypeError):
    """A flag value cannot be stored in the field it is bound to."""
