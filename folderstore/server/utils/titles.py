"""Helpers for folder and file titles."""

import re

from ..constants import DEFAULT_MAX_TITLE_LENGTH

INVALID_TITLE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def replace_invalid_chars_and_truncate(
    title: str,
    max_length: int = DEFAULT_MAX_TITLE_LENGTH,
    replace_chars: bool = True,
) -> str:
    """Make a title safe for storage.

    Characters that are invalid in file names are replaced by `_` and long
    titles are truncated. An extension within the last 20 characters of the
    limit survives truncation. With `replace_chars` off the title is only
    trimmed and truncated.
    """
    if not title:
        return title
    title = title.strip()
    if len(title) > max_length:
        pos = title.rfind(".")
        if max_length - 20 < pos and len(title) - pos < max_length:
            extension = title[pos:]
            title = title[: max_length - len(extension)] + extension
        else:
            title = title[:max_length]
    if not replace_chars:
        return title
    return INVALID_TITLE_CHARS.sub("_", title)


def bunch_key(module: str, bunch: str, data: str | None) -> str:
    """Build the symbolic key of a bunch folder."""
    return f"{module}/{bunch}/{data if data is not None else ''}"
