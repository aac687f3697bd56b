"""Deterministic word check used when the dictionary cannot answer."""

import re

from src.core.config import constants


COMMON_WORDS = frozenset(
    """
    a about after all also an and any as at back be because but by can climate change come could day do
    even first for from gas get give go good greenhouse have he her him his how i if in into is it its just
    know like look make me most my new no not now of on one only or other our out over people say see she
    so some take than that the their them then there these they think this time to two up us use want way
    we well what when which who will with work would year you your environment world global warming carbon
    temperature weather pollution sustainable renewable energy fossil fuel emissions
    """.split()
)

_VOWELS = re.compile(r"[aeiou]")
_ALPHABETIC = re.compile(r"[a-z]+(?:['-][a-z]+)*")

# Spam shapes; each must match the whole token
_SAME_CHARACTER_RUN = re.compile(r"(.)\1{4,}")
_SAME_PAIR_RUN = re.compile(r"(..)\1{3,}")
_CONSONANT_ONLY = re.compile(r"[bcdfghjklmnpqrstvwxyz]{5,}")
_RARE_LETTERS_ONLY = re.compile(r"[qxz]{3,}")


def is_spam_pattern(word: str) -> bool:
    """Return True if the whole word is one of the spam shapes.

    A word made only of one repeated character (``aaaaa``), one repeated pair
    (``abababab``), consonants or the rare letters q, x and z is spam; a real
    word with a stretched vowel such as ``cooooool`` is not.
    """
    return bool(
        _SAME_CHARACTER_RUN.fullmatch(word)
        or _SAME_PAIR_RUN.fullmatch(word)
        or _CONSONANT_ONLY.fullmatch(word)
        or _RARE_LETTERS_ONLY.fullmatch(word)
    )


def passes_basic_wordlist(word: str) -> bool:
    """Accept a normalised word if it is common or looks like English."""
    if word in COMMON_WORDS:
        return True

    if not _ALPHABETIC.fullmatch(word):
        return False

    if is_spam_pattern(word):
        return False

    has_vowel = _VOWELS.search(word) is not None
    reasonable_length = constants.MIN_WORD_LENGTH <= len(word) <= constants.MAX_WORD_LENGTH
    return has_vowel and reasonable_length
