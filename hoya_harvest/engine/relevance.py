"""Heuristic precision filter for candidate search results."""

from __future__ import annotations

from typing import Sequence

from ..config import RelevanceConfig


class RelevanceFilter:
    """Accept a result only when marker, keywords and name all line up.

    No fuzzy matching: every test is a case-insensitive substring check, and
    the filter prefers dropping a real listing over keeping a wrong one.
    """

    def __init__(self, config: RelevanceConfig) -> None:
        self.domain_marker = config.domain_marker.lower()
        self.min_keyword_matches = config.min_keyword_matches

    def is_relevant(
        self,
        title: str | None,
        snippet: str | None,
        keywords: Sequence[str],
        entity_name: str,
    ) -> bool:
        title_lc = (title or "").lower()
        snippet_lc = (snippet or "").lower()

        if self.domain_marker not in title_lc and self.domain_marker not in snippet_lc:
            return False

        matches = sum(
            1
            for keyword in keywords
            if keyword and (keyword.lower() in title_lc or keyword.lower() in snippet_lc)
        )
        if matches < self.min_keyword_matches:
            return False

        return self._name_matches(title_lc, entity_name.lower().strip())

    @staticmethod
    def _name_matches(title_lc: str, name_lc: str) -> bool:
        if not name_lc:
            return False
        if name_lc in title_lc:
            return True
        tokens = name_lc.split()
        if len(tokens) < 2:
            return False
        head = " ".join(tokens[:-1])
        return head in title_lc or tokens[-1] in title_lc


__all__ = ["RelevanceFilter"]
