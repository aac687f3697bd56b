"""Plain-text helpers shared by the validation stages."""

import html
import re


_BLOCK_BREAK = re.compile(r"</(?:p|div|li|h[1-6])\s*>|<br\s*/?>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")


def strip_markup(content: str) -> str:
    """Remove tag-like substrings and decode entities left by the rich-text editor.

    Block-closing tags become blank lines so paragraph boundaries survive.
    """
    text = _BLOCK_BREAK.sub("\n\n", content)
    return html.unescape(_TAG.sub(" ", text)).strip()


def tokenize(content: str) -> list[str]:
    """Split markup-free text on runs of whitespace."""
    return strip_markup(content).split()


def count_words(content: str) -> int:
    """Number of words in the content once markup is removed."""
    return len(tokenize(content))
