"""String sanitizing for values written into TSV upload files."""

from html.parser import HTMLParser
from typing import List, Optional

from bridgex.logging_config import get_logger

logger = get_logger(__name__)


class _TextExtractor(HTMLParser):
    """Collects text content and discards every tag."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: List[str] = []

    def handle_data(self, data: str) -> None:
        self.parts.append(data)


def strip_html(value: str) -> str:
    """Remove markup and flatten every whitespace run to a single space.

    Tabs and newlines cannot survive into a TSV row, so flattening them here
    is what keeps a row on one line.

    Example:
        >>> strip_html("<b>hello</b>\\tworld")
        'hello world'
    """
    extractor = _TextExtractor()
    extractor.feed(value)
    extractor.close()
    return " ".join("".join(extractor.parts).split())


def sanitize_string(
    value: Optional[str],
    field_name: str,
    max_length: Optional[int],
    record_id: Optional[str],
    study_id: Optional[str] = None,
) -> Optional[str]:
    """Strip HTML and truncate a value to its column's max length.

    Truncation is logged as a warning naming the field and record so that it
    can be found after the run.

    Args:
        value: Raw value, may be None
        field_name: Column the value is written to
        max_length: Column max length, None for unbounded columns
        record_id: Record being exported
        study_id: Study the record belongs to, for the log message

    Returns:
        The sanitized value, or None when ``value`` is None
    """
    if value is None:
        return None

    cleaned = strip_html(value)

    if max_length is not None and len(cleaned) > max_length:
        logger.warning(
            f"Truncating string for field {field_name} in record {record_id} in study {study_id}, "
            f"original length {len(cleaned)} to max length {max_length}"
        )
        cleaned = cleaned[:max_length]

    return cleaned
