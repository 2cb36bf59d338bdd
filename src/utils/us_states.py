# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
US state names and abbreviations, plus small query-parsing helpers
used by the planner and the fast-query path.
"""

import re

US_STATES: dict[str, str] = {
    "alabama": "AL",
    "alaska": "AK",
    "arizona": "AZ",
    "arkansas": "AR",
    "california": "CA",
    "colorado": "CO",
    "connecticut": "CT",
    "delaware": "DE",
    "florida": "FL",
    "georgia": "GA",
    "hawaii": "HI",
    "idaho": "ID",
    "illinois": "IL",
    "indiana": "IN",
    "iowa": "IA",
    "kansas": "KS",
    "kentucky": "KY",
    "louisiana": "LA",
    "maine": "ME",
    "maryland": "MD",
    "massachusetts": "MA",
    "michigan": "MI",
    "minnesota": "MN",
    "mississippi": "MS",
    "missouri": "MO",
    "montana": "MT",
    "nebraska": "NE",
    "nevada": "NV",
    "new hampshire": "NH",
    "new jersey": "NJ",
    "new mexico": "NM",
    "new york": "NY",
    "north carolina": "NC",
    "north dakota": "ND",
    "ohio": "OH",
    "oklahoma": "OK",
    "oregon": "OR",
    "pennsylvania": "PA",
    "rhode island": "RI",
    "south carolina": "SC",
    "south dakota": "SD",
    "tennessee": "TN",
    "texas": "TX",
    "utah": "UT",
    "vermont": "VT",
    "virginia": "VA",
    "washington": "WA",
    "west virginia": "WV",
    "wisconsin": "WI",
    "wyoming": "WY",
    "district of columbia": "DC",
}

STATE_ABBREVIATIONS: frozenset[str] = frozenset(US_STATES.values())

# Abbreviations that are also common English words; only trusted with context.
_AMBIGUOUS_ABBREVIATIONS: frozenset[str] = frozenset({"IN", "OR", "ME", "OK"})

# Longest names first so "west virginia" wins over "virginia".
_NAMES_BY_LENGTH = sorted(US_STATES, key=len, reverse=True)

_LOCATION_PHRASE_RE = re.compile(
    r"\b(?:based in|located in|headquartered in|in|from|near|at)\s+([a-z\s]+)",
    re.IGNORECASE,
)

_SUPERLATIVES = (
    "largest",
    "biggest",
    "top",
    "smallest",
    "highest",
    "most",
    "best",
    "leading",
    "premier",
    "major",
    "greatest",
)


def normalize_state(value: str | None) -> str | None:
    """Map a state name or abbreviation to its two-letter code. Unknown values are upper-cased as-is."""
    if not value:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    upper = cleaned.upper()
    if upper in STATE_ABBREVIATIONS:
        return upper
    return US_STATES.get(cleaned.lower(), upper)


def extract_state_from_query(query: str) -> str | None:
    """
    Find a US state mentioned in free text.

    Checks upper-case abbreviations first (IN/OR/ME/OK only after a comma,
    after "in", or before a ZIP code), then full state names, then phrases
    like "based in texas".
    """
    for abbr in sorted(STATE_ABBREVIATIONS):
        if abbr in _AMBIGUOUS_ABBREVIATIONS:
            pattern = rf"(?:,\s*|\b[Ii]n\s+){abbr}\b|\b{abbr}\s+\d{{5}}"
        else:
            pattern = rf"\b{abbr}\b"
        if re.search(pattern, query):
            return abbr

    query_lower = query.lower()
    for name in _NAMES_BY_LENGTH:
        if re.search(rf"\b{name}\b", query_lower):
            return US_STATES[name]

    for match in _LOCATION_PHRASE_RE.finditer(query_lower):
        location = match.group(1).strip()
        if location in US_STATES:
            return US_STATES[location]
        if location.upper() in STATE_ABBREVIATIONS:
            return location.upper()

    return None


def has_superlative(query: str) -> bool:
    query_lower = query.lower()
    return any(term in query_lower for term in _SUPERLATIVES)
