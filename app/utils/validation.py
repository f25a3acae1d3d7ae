import html
from typing import Optional

from app.core.config import settings
from app.core.errors import InvalidInput


def validate_title(value: Optional[str]) -> str:
    """Validate and sanitize a document title."""
    if value is None or not value.strip():
        raise InvalidInput("Title cannot be empty")

    # length is checked after escaping so the stored value fits the column
    value = html.escape(value.strip(), quote=False)
    if len(value) > settings.DOCUMENT_TITLE_MAX_LENGTH:
        raise InvalidInput(f"Title must be at most {settings.DOCUMENT_TITLE_MAX_LENGTH} characters")

    return value


def validate_content(value: Optional[str]) -> str:
    """Validate document content; content is stored as written."""
    if value is None:
        raise InvalidInput("Content is required")

    if len(value) > settings.DOCUMENT_CONTENT_MAX_LENGTH:
        raise InvalidInput(f"Content must be at most {settings.DOCUMENT_CONTENT_MAX_LENGTH} characters")

    return value


def validate_workflow_step(value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 9:
        raise InvalidInput("Workflow step must be an integer between 1 and 9")
    return value
