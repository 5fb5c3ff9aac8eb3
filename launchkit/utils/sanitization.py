"""Markdown rendering for legal documents.

Terms content is authored as markdown by whoever runs the seed/publish
commands, so it is rendered and then passed through a bleach allow-list
before being marked safe for Jinja.
"""

from datetime import datetime
from typing import Optional

import bleach
import markdown
from markupsafe import Markup

LEGAL_TAGS = [
    'p', 'br', 'strong', 'em', 'u', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'blockquote', 'code', 'pre', 'hr', 'ul', 'ol', 'li', 'a',
    'table', 'thead', 'tbody', 'tr', 'th', 'td',
]

LEGAL_ATTRS = {
    'a': ['href', 'title', 'rel'],
}

ALLOWED_PROTOCOLS = ['http', 'https', 'mailto']


def render_markdown(text: Optional[str]) -> Markup:
    """Render markdown to sanitized HTML."""
    if not text:
        return Markup("")
    html = markdown.markdown(text, extensions=["tables", "sane_lists"])
    cleaned = bleach.clean(
        html,
        tags=LEGAL_TAGS,
        attributes=LEGAL_ATTRS,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )
    return Markup(cleaned)


def format_long_date(value) -> str:
    """Format a datetime (or ISO string) as e.g. "January 5, 2026"."""
    if value is None:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return f"{value.strftime('%B')} {value.day}, {value.year}"
