"""Ingredient term cleaning and normalization."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from price_gateway.services.pricing.constants import MIN_TERM_LENGTH


if TYPE_CHECKING:
    from collections.abc import Iterable


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_term(term: str) -> str:
    """Lower-case, collapse non-alphanumeric runs to one space, and trim.

    Used only for cache keys and dedup. "Whole  Milk!" and "whole milk" share
    the normalized form "whole milk".
    """
    return _NON_ALNUM.sub(" ", term.lower()).strip()


def is_accepted(term: object) -> bool:
    """Whether a raw input survives cleaning (a string longer than one char)."""
    return isinstance(term, str) and len(term.strip()) >= MIN_TERM_LENGTH


def accepted_terms(terms: Iterable[object]) -> list[str]:
    """Keep accepted terms in input order, with their original spelling."""
    return [term for term in terms if is_accepted(term)]  # type: ignore[misc]


__all__ = ["accepted_terms", "is_accepted", "normalize_term"]
