"""
Relevance matching between a candidate title and the user's query.
"""
from typing import List, Optional

MIN_TOKEN_LENGTH = 3


def query_tokens(query: str) -> List[str]:
    """Lowercased whitespace tokens, dropping anything of length <= 2."""
    return [token for token in query.lower().split() if len(token) >= MIN_TOKEN_LENGTH]


def match_ratio(title: str, query: str) -> float:
    """Fraction of meaningful query tokens found as substrings of the title."""
    tokens = query_tokens(query)
    if not tokens:
        return 1.0
    title_lower = title.lower()
    matches = [token for token in tokens if token in title_lower]
    return len(matches) / len(tokens)


def is_relevant(title: Optional[str], query: Optional[str], threshold: float) -> bool:
    """
    Decide whether a title describes the queried product.

    Substring containment, not exact token match, so the query "casque"
    still matches a title saying "Casques". A query made only of short
    tokens matches every title. Boundary is inclusive.
    """
    if not title or not query:
        return False
    return match_ratio(title, query) >= threshold
