"""Ranking of inverted-index matches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping


@dataclass(slots=True)
class Match:
    route: str
    matched_terms: int = 0
    frequency: int = 0

    @property
    def score(self) -> float:
        """Distinct matched terms first, total frequency as the fraction.

        The fractional part stays below 1, so a document matching more
        distinct terms always outscores one matching fewer.
        """
        return self.matched_terms + self.frequency / (self.frequency + 1)

    def sort_key(self) -> tuple[int, int, str]:
        return (-self.matched_terms, -self.frequency, self.route)


def rank_postings(
    terms: Iterable[str], postings: Mapping[str, Mapping[str, int]]
) -> List[Match]:
    """Collect every route containing at least one of ``terms`` and rank them.

    Ordering: more distinct query terms matched, then higher total term
    frequency, then route name so equal documents come back in a stable order.
    """
    matches: Dict[str, Match] = {}
    for term in dict.fromkeys(terms):
        for route, frequency in postings.get(term, {}).items():
            match = matches.get(route)
            if match is None:
                match = matches[route] = Match(route)
            match.matched_terms += 1
            match.frequency += frequency
    return sorted(matches.values(), key=Match.sort_key)
