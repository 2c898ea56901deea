from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from birthday_engine.models import GiftRequest

DEFAULT_COUNTRY = "AU"

# Characters JavaScript's encodeURIComponent leaves unescaped besides [A-Za-z0-9_.~-].
_URI_COMPONENT_SAFE = "!'()*"


@dataclass(frozen=True)
class CountryConfig:
    name: str
    currency: str
    retailers: str
    search_url: str


COUNTRY_CONFIG: dict[str, CountryConfig] = {
    "AU": CountryConfig(
        "Australia", "A$", "Amazon Australia, Kmart, Big W, The Iconic, Myer", "https://www.amazon.com.au/s?k="
    ),
    "GB": CountryConfig(
        "United Kingdom", "£", "Amazon UK, Etsy, Not On The High Street, John Lewis", "https://www.amazon.co.uk/s?k="
    ),
    "US": CountryConfig("United States", "$", "Amazon, Etsy, Target, Nordstrom", "https://www.amazon.com/s?k="),
    "CA": CountryConfig(
        "Canada", "C$", "Amazon Canada, Indigo, Canadian Tire, Hudson's Bay", "https://www.amazon.ca/s?k="
    ),
    "IE": CountryConfig("Ireland", "€", "Amazon, Etsy, Brown Thomas, Arnotts", "https://www.google.ie/search?q="),
    "NZ": CountryConfig(
        "New Zealand", "NZ$", "Amazon, The Warehouse, Mighty Ape, Farmers", "https://www.mightyape.co.nz/search?q="
    ),
    "ZA": CountryConfig(
        "South Africa", "R", "Takealot, Superbalist, Mr Price, Woolworths", "https://www.takealot.com/all?qsearch="
    ),
    "IN": CountryConfig("India", "₹", "Amazon India, Flipkart, Myntra, Nykaa", "https://www.amazon.in/s?k="),
}


def resolve_country(country: str | None, default: str = DEFAULT_COUNTRY) -> CountryConfig:
    code = (country or "").strip().upper()
    if code in COUNTRY_CONFIG:
        return COUNTRY_CONFIG[code]
    return COUNTRY_CONFIG.get(default.upper(), COUNTRY_CONFIG[DEFAULT_COUNTRY])


def build_search_url(query: str, country: str | None) -> str:
    config = resolve_country(country)
    return f"{config.search_url}{quote(query, safe=_URI_COMPONENT_SAFE)}"


def build_gift_prompt(request: GiftRequest) -> str:
    config = resolve_country(request.country)

    lines = [
        "You are a gift recommendation expert. Based on the following information about a person, "
        "suggest exactly 3 thoughtful, purchasable gift ideas. Return ONLY a JSON array with no other text, "
        "no markdown fences, no explanation.",
        "",
        "Each gift object must have these exact fields:",
        '- "name": short, specific product name (e.g. "Sony WH-1000XM5 Headphones" not just "Headphones")',
        '- "description": 2-3 sentence description of why this gift suits the person',
        f'- "estimatedPrice": price range as a string (e.g. "{config.currency}20-{config.currency}30")',
        "",
        "Person details:",
        f"- Name: {request.name}",
    ]

    if request.age is not None:
        lines.append(f"- Age: {request.age}")
    lines.append(f"- Relationship: {request.relationship}")
    lines.append(f"- Country: {config.name}")

    if request.interests:
        lines.append(f"- Interests: {', '.join(request.interests)}")

    if request.past_gifts:
        lines.append("- Past gifts:")
        for gift in request.past_gifts:
            line = f"  - {gift.year}: {gift.description}"
            if gift.rating is not None:
                line += f" (rated {gift.rating}/5)"
            lines.append(line)

    if request.notes:
        lines.append(f"- Notes/preferences: {request.notes}")

    if request.gift_ideas:
        lines.append(f"- Existing gift ideas to consider: {', '.join(request.gift_ideas)}")

    lines.extend(
        [
            "",
            "IMPORTANT: Suggest gifts that are different from past gifts, and do not repeat a past gift "
            "that was rated highly. If a past gift had a high rating, use it as a signal of what they like. "
            f"Prefer gifts available from retailers such as {config.retailers}. "
            f"Use prices in {config.currency}. "
            'Do NOT include a "purchaseUrl" field or any links - we will generate search links automatically. '
            "Return ONLY valid JSON array - no markdown, no explanation.",
        ]
    )
    return "\n".join(lines)
