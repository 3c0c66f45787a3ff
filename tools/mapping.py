import re
from typing import Any, Mapping

_WHITESPACE = re.compile(r"\s+")

def slugify_header(header: Any) -> str:
    """Lower-case the header and collapse whitespace runs into one underscore."""
    return _WHITESPACE.sub("_", str(header).lower())

def map_header(header: Any, field_mapping: Mapping[str, str]) -> str:
    """
    Resolve a raw column header to its canonical field name.

    Explicit entries in the mapping win; anything else goes through the
    slug transform. Headers that differ only in case or spacing are not
    unified unless each variant is listed in the mapping.
    """
    if isinstance(header, str) and header in field_mapping:
        return field_mapping[header]
    return slugify_header(header)
