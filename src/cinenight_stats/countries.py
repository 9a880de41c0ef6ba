"""Static country lookup tables used when resolving a movie's primary country."""

from types import MappingProxyType

ISO_TO_NAME = MappingProxyType({
    "IT": "Italy",
    "FR": "France",
    "DE": "Germany",
    "ES": "Spain",
    "CA": "Canada",
    "JP": "Japan",
    "KR": "Korea, Republic of",
    "CN": "China",
    "HK": "Hong Kong SAR China",
    "TW": "Taiwan, Province of China",
    "IN": "India",
    "AU": "Australia",
    "BR": "Brazil",
    "MX": "Mexico",
})

# Historical and alternate spellings
ALIASES = MappingProxyType({
    "United States of America": "United States",
    "Republic of Korea": "Korea, Republic of",
    "South Korea": "Korea, Republic of",
    "S Korea": "Korea, Republic of",
    "Korea South": "Korea, Republic of",
    "Czech Republic": "Czechia",
    "Russia": "Russian Federation",
    "Viet Nam": "Vietnam",
    "Soviet Union": "Russia",
    "SU": "Russia",
})


def resolve_country_name(candidate) -> str | None:
    """
    Map a raw country candidate to a display name.

    ISO codes are matched case-insensitively; aliases are matched on the
    trimmed string. Unknown values are returned trimmed and unchanged.
    """
    if candidate is None:
        return None
    raw = str(candidate).strip()
    if not raw:
        return None
    iso_name = ISO_TO_NAME.get(raw.upper())
    if iso_name:
        return iso_name
    return ALIASES.get(raw, raw)
