"""
Front matter parsing for content documents.

A document must open with a YAML block delimited by ``---`` lines::

    ---
    title: Hello
    date: 01/31/2024
    time_to_read: 4 minutes
    ---
    Body text...
"""

import re
from datetime import datetime, date

import yaml

from .errors import MissingFrontMatter, InvalidFrontMatter

DATE_FORMAT = '%m/%d/%Y'
DISPLAY_DATE_FORMAT = '%B %d, %Y'

FRONT_MATTER_RE = re.compile(r'\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)', re.DOTALL | re.MULTILINE)


class FrontMatter:
    """Metadata parsed from the head of a document."""

    def __init__(self, title, date=None, time_to_read=None):
        self.title = title
        self.date = date
        self.time_to_read = time_to_read

    def display_date(self):
        if self.date is None:
            return None
        return self.date.strftime(DISPLAY_DATE_FORMAT)

    def __eq__(self, other):
        if not isinstance(other, FrontMatter):
            return NotImplemented
        return (self.title, self.date, self.time_to_read) == (other.title, other.date, other.time_to_read)

    def __repr__(self):
        return f"FrontMatter(title={self.title!r}, date={self.date!r}, time_to_read={self.time_to_read!r})"


def split_front_matter(text, source=None):
    """Split raw document text into (yaml block, body)."""
    match = FRONT_MATTER_RE.match(text)
    if not match:
        raise MissingFrontMatter("document does not start with a '---' front matter block", source)
    return match.group(1), text[match.end():]


def parse_date(value, source=None):
    """Parse the ``date`` field. ``None`` (absent or null) means no date."""
    if value is None:
        return None
    # YAML turns unquoted ISO dates into date objects; only MM/DD/YYYY is accepted
    if isinstance(value, (date, datetime)):
        raise InvalidFrontMatter(f"date must be a string in MM/DD/YYYY format, got {value!s}", source)
    if not isinstance(value, str):
        raise InvalidFrontMatter(f"date must be a string in MM/DD/YYYY format, got {value!r}", source)
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError as e:
        raise InvalidFrontMatter(f"failed to parse date {value!r}: {e}", source)


def parse_time_to_read(value, source=None):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise InvalidFrontMatter(f"time_to_read must be text, got {value!r}", source)
    return str(value)


def parse_front_matter(text, source=None):
    """
    Parse a document into its front matter and remaining body.

    Args:
        text: Raw document text
        source: Identity used in error messages

    Returns:
        Tuple of (FrontMatter, body)

    Raises:
        MissingFrontMatter: the document has no front matter block
        InvalidFrontMatter: the block is not a YAML mapping with a string title
    """
    block, body = split_front_matter(text, source)
    try:
        metadata = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise InvalidFrontMatter(f"invalid YAML front matter: {e}", source)

    if not isinstance(metadata, dict):
        raise InvalidFrontMatter("front matter must be a mapping", source)

    title = metadata.get('title')
    if not isinstance(title, str) or not title.strip():
        raise InvalidFrontMatter("front matter requires a string 'title'", source)

    front_matter = FrontMatter(
        title=title,
        date=parse_date(metadata.get('date'), source),
        time_to_read=parse_time_to_read(metadata.get('time_to_read'), source),
    )
    return front_matter, body
