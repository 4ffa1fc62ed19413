"""Centralised security utilities for filenames and user-supplied HTML"""

import html
import re
from pathlib import Path
from typing import Union

import bleach


class PathSecurity:
    """Security utilities for file paths and filenames"""

    DANGEROUS_PATTERN = re.compile(
        r'\.\.(?:/|\\|$)'   # Parent directory traversal (.. followed by separator or end)
        r'|^/'              # Absolute path (Unix)
        r'|^\\'             # Absolute path (Windows)
        r'|^[A-Za-z]:'      # Drive letters (Windows)
        r'|~'               # Home directory expansion
        r'|\$'              # Variable expansion
        r'|`'               # Command substitution
        r'|[|;&<>*?]'       # Shell metacharacters
    )

    WINDOWS_RESERVED = {
        'CON', 'PRN', 'AUX', 'NUL',
        'COM1', 'COM2', 'COM3', 'COM4', 'COM5', 'COM6', 'COM7', 'COM8', 'COM9',
        'LPT1', 'LPT2', 'LPT3', 'LPT4', 'LPT5', 'LPT6', 'LPT7', 'LPT8', 'LPT9'
    }

    @classmethod
    def sanitize_filename(cls, filename: str, max_length: int = 255) -> str:
        """Sanitize an uploaded filename, keeping spaces and unicode letters."""

        if not filename or not filename.strip():
            raise ValueError("Filename cannot be empty")

        if cls.DANGEROUS_PATTERN.search(filename):
            raise ValueError("Filename contains dangerous patterns")

        # Extract just the filename (no path components)
        filename = Path(filename.replace("\\", "/")).name

        sanitized = re.sub(r'[^\w.\- ()]', '_', filename)
        sanitized = re.sub(r'_+', '_', sanitized).strip(' _.')

        # Truncate if too long (preserve extension)
        if len(sanitized) > max_length:
            stem = Path(sanitized).stem
            suffix = Path(sanitized).suffix
            sanitized = stem[:max_length - len(suffix)] + suffix

        if not sanitized or sanitized in ('.', '..'):
            raise ValueError("Sanitized filename is invalid")

        if sanitized.upper().split('.')[0] in cls.WINDOWS_RESERVED:
            raise ValueError(f"Filename '{sanitized}' is reserved on Windows")

        return sanitized

    @classmethod
    def validate_filename(cls, filename: str) -> bool:
        """Validate a filename without modifying it."""

        if not filename or filename.strip() in ('', '.', '..'):
            return False

        if cls.DANGEROUS_PATTERN.search(filename):
            return False

        if '/' in filename or '\\' in filename:
            return False

        return filename.upper().split('.')[0] not in cls.WINDOWS_RESERVED

    @classmethod
    def validate_path(cls, path: Union[str, Path], base_dir: Union[str, Path]) -> bool:
        """Validate a file path to ensure it is within a specified base directory."""

        try:
            Path(path).resolve().relative_to(Path(base_dir).resolve())
            return True

        except (ValueError, RuntimeError, OSError):
            return False


class HtmlSecurity:
    """Sanitising and flattening of HTML message content."""

    QUOTE_SAFE_TAGS = [
        'a', 'b', 'blockquote', 'br', 'code', 'div', 'em', 'i', 'li', 'ol',
        'p', 'pre', 'span', 'strong', 'sub', 'sup', 'table', 'tbody', 'td',
        'th', 'thead', 'tr', 'u', 'ul',
    ]

    QUOTE_SAFE_ATTRIBUTES = {
        'a': ['href', 'title'],
        'td': ['colspan', 'rowspan'],
        'th': ['colspan', 'rowspan'],
    }

    _cleaner = bleach.Cleaner(
        tags=QUOTE_SAFE_TAGS,
        attributes=QUOTE_SAFE_ATTRIBUTES,
        protocols=['http', 'https', 'mailto'],
        strip=True,
        strip_comments=True,
    )

    _LINE_BREAKS = re.compile(r'<\s*br\s*/?\s*>', re.IGNORECASE)

    @classmethod
    def sanitize(cls, markup: str) -> str:
        """Strip scripts, styles and unknown attributes from untrusted HTML."""

        if not markup:
            return ""

        return cls._cleaner.clean(markup)

    @classmethod
    def to_plain_text(cls, markup: str) -> str:
        """Render HTML as plain text, keeping line breaks at block boundaries."""

        if not markup:
            return ""

        # Source whitespace is insignificant; bleach breaks stripped block tags itself
        text = re.sub(r'\s+', ' ', markup)
        text = cls._LINE_BREAKS.sub("\n", text)
        text = bleach.clean(text, tags=[], attributes={}, strip=True, strip_comments=True)
        text = html.unescape(text)
        text = re.sub(r'[ \t]*\n[ \t]*', "\n", text)

        return re.sub(r'\n{3,}', "\n\n", text).strip()

    @staticmethod
    def from_plain_text(text: str) -> str:
        """Escape plain text and convert newlines to <br /> tags."""

        return html.escape(text or "").replace("\n", "<br />\n")
