"""Parsing of the per-field flag annotation."""

from typing import NamedTuple

from .errors import TagError

# Default metadata key holding the annotation, e.g.
# field(default=0, metadata={"flag": "port,8080,port to listen on"})
TAG_KEY = "flag"


class Tag(NamedTuple):
    name: str
    default: str
    help: str


def parse_tag(text: str) -> Tag:
    """
    Split an annotation into its name, default and help segments.

    Only the first two commas separate segments, so the help text may itself
    contain commas.

    Raises:
        TagError: If the annotation has fewer than three segments.
    """
    parts = text.split(",", 2)
    if len(parts) != 3:
        raise TagError(f"invalid tag value {text!r}: expected 'name,default,help'")
    return Tag(*parts)
