"""Text normalization utilities for title comparison.

Release titles scraped from trackers and catalog titles rarely agree on
case, punctuation, quotes or diacritics ("Ёлки" vs "Елки", "Spider-Man" vs
"Spider Man"). Every comparison made by the similarity filter goes through
this module so both sides are reduced to the same form.

Typical usage example:
    Normalizer.clean("Spider-Man: Homecoming")  # "spiderman homecoming"
    Normalizer.title_set(["Веном", "Venom", ""])  # {"веном", "venom"}
"""

import re
import unicodedata
from typing import Iterable, Set


class Normalizer:
    """Stateless title normalization helpers."""

    @staticmethod
    def strip_accents(text: str) -> str:
        """Remove accents from unicode text using NFKD normalization.

        Normalizes characters to their decomposed form and drops combining
        marks. For Cyrillic this folds "ё" into "е", which trackers use
        inconsistently; "й" is a distinct letter and is kept.

        Example:
            >>> Normalizer.strip_accents("Café")
            'Cafe'
            >>> Normalizer.strip_accents("Ёлки")
            'Елки'
            >>> Normalizer.strip_accents("Мой")
            'Мой'
        """
        if not text:
            return ""
        text = unicodedata.normalize("NFKD", text)
        # Recompose й/Й before combining marks are dropped
        text = text.replace("и\u0306", "й").replace("И\u0306", "Й")
        return "".join([c for c in text if not unicodedata.combining(c)])

    @staticmethod
    def remove_year_brackets(text: str) -> str:
        """Remove year indicators in brackets/parentheses.

        Example:
            >>> Normalizer.remove_year_brackets("Venom (2018)")
            'Venom'
        """
        if not text:
            return ""
        text = re.sub(r"\s*[\(\[]\s*\d{4}\s*[\)\]]", "", text)
        return text.strip()

    @staticmethod
    def clean(text: str) -> str:
        """Normalize a title for comparison.

        Normalization steps:
        1. Smart quote normalization
        2. Unicode NFKD normalization + accent stripping
        3. Lowercase + trim
        4. Remove year brackets (2018), [1999]
        5. "&" becomes "and"
        6. Remove all punctuation (hyphens and colons included)
        7. Normalize whitespace

        Example:
            >>> Normalizer.clean("  Spider-Man:  Far From Home ")
            'spiderman far from home'
        """
        if not text:
            return ""

        text = text.replace("‘", "'").replace("’", "'")
        text = text.replace("“", '"').replace("”", '"')
        text = text.replace("«", '"').replace("»", '"')

        text = Normalizer.strip_accents(text)
        text = text.lower().strip()
        text = Normalizer.remove_year_brackets(text)
        text = text.replace("&", " and ")

        # \w is unicode aware, so Cyrillic letters survive
        text = re.sub(r"[^\w\s]", "", text)
        text = text.replace("_", " ")

        return re.sub(r"\s+", " ", text).strip()

    @staticmethod
    def title_set(titles: Iterable[str]) -> Set[str]:
        """Cleans every title and drops the ones that normalize to nothing."""
        result = set()
        for title in titles:
            cleaned = Normalizer.clean(title or "")
            if cleaned:
                result.add(cleaned)
        return result
