"""Default prompt texts and prompt-variable helpers."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, Literal

PromptKey = Literal["ingestion", "daily_insights", "weekly_update"]

_JSON_RULES = """━━━━━━━━━━━━━━━━━━━━
CRITICAL OUTPUT RULES
━━━━━━━━━━━━━━━━━━━━
1. OUTPUT FORMAT: Return ONLY a valid JSON object. Nothing else.
2. NO MARKDOWN: Do not use ```json code fences. Start immediately with {
3. STRICT JSON:
   - All keys and string values in double quotes
   - Escape quotes inside strings as \\"
   - Escape newlines as \\n
   - No trailing commas
   - Start with { and end with }"""

INGESTION_PROMPT: Final[str] = (
    _JSON_RULES
    + """

4. IMAGE HANDLING:
   - Each input article has an "imageUrl" field.
   - Copy it EXACTLY into "image_link". If it is null, output null.

5. REQUIRED SCHEMA:
{
  "subject": "AI Product Briefing - Day Month Year",
  "items": [
    {
      "category": "One of the allowed categories",
      "creator": "Outlet name",
      "title": "Article title",
      "ai_generated_summary": "1-2 sentences. Hard facts only.",
      "why_it_matters": "1 sentence. Product implication for PMs.",
      "business_value": "1 sentence. Concrete business impact.",
      "published_date": "Original isoDate",
      "source_link": "Original link",
      "image_link": "Exact copy of the input imageUrl"
    }
  ]
}

━━━━━━━━━━━━━━━━━━━━
INPUT DATA
━━━━━━━━━━━━━━━━━━━━
{{ JSON.stringify($json.articles) }}

AUDIENCE: Product managers and product leaders building digital products.

SELECTION (8-10 most relevant). Keep only articles about:
- AI tools changing PM workflows (research, roadmapping, prioritization, analytics)
- How AI changes the way software is built and shipped
- Notable product launches, positioning and GTM decisions
- Product outcomes, case studies and experiment results
- UX and interaction design patterns
- Strategic shifts (build vs. buy, pricing, platform changes)

EXCLUDE: infrastructure/DevOps, funding rounds, enterprise IT, security operations,
generic op-eds, content aimed at ML researchers, lifestyle and hype pieces.

DEDUPLICATION: when several articles cover the same story keep only the one with
the most actionable product perspective.

ALLOWED CATEGORIES:
PM Tools & Workflows
Software Development
Product Launches
Product Strategy
UX & Design
Case Studies & Outcomes

Now analyze the input data and generate the JSON response."""
)

DAILY_INSIGHTS_PROMPT: Final[str] = (
    "You are the editor of a daily digest for product managers building AI-powered "
    "products. Focus on the most significant developments from the past 24 hours.\n\n"
    + _JSON_RULES
    + """
4. BRAND LANGUAGE:
   - Open the intro with a greeting such as "Hey Chefs! Let's have a look at today's menu."
   - Plain language, no buzzwords. Readers include business people new to the field.
   - Do NOT output literal line breaks inside strings.

REQUIRED STRUCTURE:
{
  "subject": "Building AI Products - Daily Insights",
  "intro": "2-3 sentences about today's most important developments",
  "featured_story": {
    "id": 1,
    "headline": "Compelling headline",
    "why_this_matters": "3-5 sentences explaining strategic impact",
    "link": "URL from the article with this id"
  },
  "top_stories": [
    {
      "id": 2,
      "headline": "Story headline",
      "why_read_it": "One sentence explaining value",
      "link": "URL from the article with this id"
    }
  ],
  "looking_ahead": "2-3 sentences about what to watch next",
  "article_ids_selected": [1, 2]
}

Select 3 to 6 articles (1 featured + 2 to 5 top stories) from at least 3 different creators.

ARTICLES FROM {{ $json.day_start }} TO {{ $json.day_end }}
Total articles: {{ $json.total_articles }}

{{ JSON.stringify($json.articles, null, 2) }}

PRIORITIZE practical takeaways, diverse topics and creators, breaking news over
evergreen content, practitioner perspectives over vendor announcements.

NOW CREATE YOUR RESPONSE USING THE ARTICLES PROVIDED ABOVE."""
)

WEEKLY_UPDATE_PROMPT: Final[str] = (
    "You are the editor of a weekly digest for product managers building AI-powered "
    "products.\n\n"
    + _JSON_RULES
    + """
4. BRAND LANGUAGE: keep the cucina labs kitchen metaphor and plain language.

REQUIRED STRUCTURE:
{
  "subject": "Building AI Products - Weekly Menu",
  "from_chefs_table": {
    "title": "Optional short title",
    "body": "2-4 sentences that tee up this week's issue"
  },
  "news": [
    {
      "id": 1,
      "headline": "Story headline",
      "why_this_matters": "2-3 sentences focused on PM implications",
      "source": "Creator/Publisher name",
      "link": "URL from the article with this id"
    }
  ],
  "what_were_reading": [
    {"title": "Saved reading title", "url": "Saved reading URL", "description": "1-2 sentences"}
  ],
  "what_were_cooking": {
    "title": "Latest cooking item", "url": "URL", "description": "1-2 sentences"
  },
  "article_ids_selected": [1, 2, 3]
}

- "news" must contain EXACTLY 3 stories from different creators.
- "what_were_reading" must contain 3 to 5 items (use all when fewer are provided).
- "what_were_cooking" must use the single latest cooking item.

WEEK RANGE: {{ $json.week_start }} to {{ $json.week_end }}
TOTAL ARTICLES: {{ $json.total_articles }}

ARTICLES FROM THIS WEEK:
{{ JSON.stringify($json.articles, null, 2) }}

SAVED READING CANDIDATES (type=reading, last 7 days):
{{ JSON.stringify($json.reading_items, null, 2) }}

LATEST COOKING ITEM (type=cooking):
{{ JSON.stringify($json.cooking_item, null, 2) }}

Now generate the JSON response."""
)

DEFAULT_SEQUENCE_SYSTEM_PROMPT: Final[str] = """You write the cucina labs newsletter for \
product managers building AI products. Be concise, practical and free of hype.

{{ $json.content_sections }}"""

DEFAULT_SEQUENCE_USER_PROMPT: Final[str] = DAILY_INSIGHTS_PROMPT


@dataclass(frozen=True)
class PromptDefinition:
    key: PromptKey
    label: str
    description: str
    default_prompt: str


PROMPT_DEFINITIONS: Final[dict[str, PromptDefinition]] = {
    "ingestion": PromptDefinition(
        key="ingestion",
        label="Ingestion Prompt",
        description="Used by the daily content ingestion flow before storing selected articles.",
        default_prompt=INGESTION_PROMPT,
    ),
    "daily_insights": PromptDefinition(
        key="daily_insights",
        label="Daily Insights Prompt",
        description="Used to generate the daily insights email from ingested content.",
        default_prompt=DAILY_INSIGHTS_PROMPT,
    ),
    "weekly_update": PromptDefinition(
        key="weekly_update",
        label="Weekly Update Prompt",
        description=(
            "Used to generate the weekly newsletter structure and select the top 3 stories."
        ),
        default_prompt=WEEKLY_UPDATE_PROMPT,
    ),
}

_VARIABLE_PATTERN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


def extract_prompt_variables(prompt: str) -> list[str]:
    """Return the distinct ``{{ name }}`` placeholders in first-seen order."""
    seen: dict[str, None] = {}
    for match in _VARIABLE_PATTERN.finditer(prompt):
        seen.setdefault(f"{{{{ {match.group(1).strip()} }}}}", None)
    return list(seen)


_FILL_PATTERN = re.compile(r"\{\{\s*(?:JSON\.stringify\(\s*)?\$json\.(\w+)[^}]*\}\}")


def fill_prompt(template: str, values: Mapping[str, str]) -> str:
    """Substitute ``{{ $json.name }}`` and ``{{ JSON.stringify($json.name, ...) }}``.

    Unknown placeholders are left in place.
    """

    def replace(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return _FILL_PATTERN.sub(replace, template)


def references(template: str, name: str) -> bool:
    return any(match.group(1) == name for match in _FILL_PATTERN.finditer(template))
