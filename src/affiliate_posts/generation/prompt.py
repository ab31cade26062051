from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..domain.models import Product, Settings
from ..logging import get_logger


LOG = get_logger("generation-prompt")

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Z0-9_]+)\s*\}\}")

DEFAULT_TASK = "Write a comprehensive and engaging blog post comparing the products provided."

FALLBACKS: Dict[str, str] = {
    "GENERAL_SETTINGS": "No general instructions provided.",
    "SPECIFIC_INSTRUCTIONS": "No specific instructions provided.",
    "CTA_TEXT": "Check latest price",
    "SEO_KEYWORDS": "No SEO keywords provided; choose natural keywords for the product category.",
    "PRODUCT_DETAILS": "No product information provided.",
    "USER_PROVIDED_TEMPLATE_TASK": DEFAULT_TASK,
}

TONE_DEFAULT = "The overall tone of the post must be neutral and informative."

COMPARISON_TABLE_INSTRUCTION = (
    "**Comparison Table:**\n"
    "After the individual product sections, you MUST include a comparison table styled with inline CSS. "
    'Use `<table style="width: 100%; border-collapse: collapse;">`. Header cells (`<th>`) use '
    '`style="border: 1px solid #cccccc; padding: 12px; text-align: left; background-color: #f2f2f2; '
    'color: #333333; font-weight: bold;"`; standard cells (`<td>`) use '
    '`style="border: 1px solid #cccccc; padding: 12px; text-align: left; vertical-align: top;"`.'
)

COMPARISON_CARDS_INSTRUCTION = (
    "**Specification Comparison Section using TABLE-BASED CARDS:**\n"
    "After the individual product sections, you MUST create a 'Specification Comparison' section made of "
    "'Comparison Cards'. A Comparison Card is a self-contained HTML table comparing ONE feature: a header row "
    "with the feature name (one `<th colspan>` cell) and one body row with a cell per product showing the value "
    "in bold and the product name underneath. Style every card with inline CSS only "
    '(e.g. `<table style="width:100%; border-collapse: separate; border-radius: 8px; margin-bottom: 12px; '
    'border: 1px solid #4a5568;">`). Generate one card per key feature; do NOT use a single plain grid table.'
)

DEFAULT_POST_TEMPLATE = """
You are an expert blog writer specializing in beautiful, well-structured and engaging product comparisons
that can be pasted into platforms like WordPress or Blogger.

---
**CRITICAL OUTPUT RULES (MUST be followed):**
1. **JSON Output:** Your entire response must be a single, valid JSON object.
2. **JSON Schema:** The object must have the keys "title" (string), "heroImageUrl" (string), "content" (string),
   "tags" (array of strings), "metaDescription" (string) and "socialMediaSnippets" (string).
3. **Title:** Generate a new, compelling, SEO-friendly title that reflects a comparison. Do NOT reuse a single
   product's title.
4. **Content Quality:** Rewrite and summarize the product details into original, engaging descriptions.
5. **No Prices:** Do NOT include specific prices; guide the reader to check the current price via the affiliate link.
6. **Hero Image:** For "heroImageUrl" pick the most visually appealing product image URL from the product information.
7. **SEO:** "tags" holds 5-7 relevant SEO keywords. "metaDescription" is at most 160 characters.
   Work these keywords in naturally: {{SEO_KEYWORDS}}
8. **HTML Content:** "content" is clean HTML with inline CSS only (no <style> tags or classes).
9. **In-Content Images:** Embed each product's image with descriptive alt text before its description.
10. **Affiliate Links:** Link product titles to their affiliate links. You may occasionally use the link text
    "{{CTA_TEXT}}". Never write "click here".
11. **Tone:** {{TONE_INSTRUCTION}}
12. **Footer:** The VERY LAST element of the HTML must be
    `<p style="font-size: small; color: #888888; text-align: center;">{{FOOTER_TEXT}}</p>`.
13. **Social:** "socialMediaSnippets" holds two or three short promotional posts separated by blank lines.

---
**Core Task:**
{{USER_PROVIDED_TEMPLATE_TASK}}

The blog post structure should be:
1. An introduction that grabs the reader's attention.
2. A detailed section for each product, including its image and a well-written description.
{{COMPARISON_FORMAT_INSTRUCTION}}
3. A final "Verdict" section summarizing which product is best for different types of users.

---
**Global Settings (General Writing Style):**
{{GENERAL_SETTINGS}}

**Specific Instructions for This Post:**
{{SPECIFIC_INSTRUCTIONS}}

---
**Product Information to Use:**
{{PRODUCT_DETAILS}}
"""


# ---------- reply schemas ----------
# Provider-facing response schemas (Gemini Schema dialect, also used by the validator).
POST_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "heroImageUrl": {"type": "STRING"},
        "content": {"type": "STRING"},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "metaDescription": {"type": "STRING"},
        "socialMediaSnippets": {"type": "STRING"},
    },
    "required": ["title", "content"],
}

PRODUCT_DETAILS_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "brand": {"type": "STRING"},
        "price": {"type": "STRING"},
        "description": {"type": "STRING"},
        "imageUrl": {"type": "STRING"},
    },
    "required": ["title", "price", "description", "imageUrl"],
}

TITLE_IDEAS_SCHEMA: Dict[str, Any] = {"type": "ARRAY", "items": {"type": "STRING"}}

TAGS_SCHEMA: Dict[str, Any] = {"type": "ARRAY", "items": {"type": "STRING"}}


def _value_or_na(value: Optional[str]) -> str:
    return value if value else "N/A"


def format_product_details(products: Sequence[Product]) -> str:
    """Render the numbered product listing substituted for {{PRODUCT_DETAILS}}."""
    blocks: List[str] = []
    for index, p in enumerate(products, start=1):
        lines = [
            f"Product {index}:",
            f"- Name/Title: {_value_or_na(p.display_name)}",
            f"- Brand: {_value_or_na(p.brand)}",
            f"- Price: {_value_or_na(p.price)}",
            f"- Affiliate Link: {_value_or_na(p.affiliate_link or p.product_url)}",
            f"- Image URL: {_value_or_na(p.image_url)}",
            f"- Raw Description/Details: {_value_or_na(p.description)}",
        ]
        if p.other_info:
            lines.append(f"- Additional Info: {p.other_info}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_seo_keywords(seo_keywords: Any) -> str:
    """Accepts a string, a list, or a {primary, secondary} mapping."""
    if not seo_keywords:
        return ""
    if isinstance(seo_keywords, str):
        return seo_keywords.strip()
    if isinstance(seo_keywords, Mapping):
        parts = []
        primary = str(seo_keywords.get("primary") or "").strip()
        secondary = str(seo_keywords.get("secondary") or "").strip()
        if primary:
            parts.append(f"Primary: {primary}")
        if secondary:
            parts.append(f"Secondary: {secondary}")
        return "; ".join(parts)
    if isinstance(seo_keywords, Iterable):
        return ", ".join(str(k).strip() for k in seo_keywords if str(k).strip())
    return ""


def tone_instruction(tone: str) -> str:
    if tone:
        return f"The overall tone of the post must be: {tone}."
    return TONE_DEFAULT


def substitute(skeleton: str, values: Mapping[str, str]) -> str:
    """Replace every {{TOKEN}} in one pass; substituted text is never re-scanned.

    Empty values use FALLBACKS when one is defined (an empty footer stays
    empty); unknown tokens become empty strings.
    """
    unknown: List[str] = []

    def _replace(match: "re.Match[str]") -> str:
        token = match.group(1)
        if token in values:
            value = values[token]
            return value if value else FALLBACKS.get(token, "")
        unknown.append(token)
        return ""

    result = PLACEHOLDER_RE.sub(_replace, skeleton)
    if unknown:
        LOG.warning("Dropped unknown placeholder(s): %s", ", ".join(sorted(set(unknown))))
    return result


def resolve_skeleton(template_prompt: Optional[str]) -> str:
    """Pick the prompt skeleton for a template.

    A template containing {{PRODUCT_DETAILS}} is a full skeleton; any other
    non-empty template is the core task inside the default skeleton.
    """
    template = (template_prompt or "").strip()
    if not template:
        return DEFAULT_POST_TEMPLATE
    tokens = set(PLACEHOLDER_RE.findall(template))
    if "PRODUCT_DETAILS" in tokens:
        return template
    return DEFAULT_POST_TEMPLATE.replace("{{USER_PROVIDED_TEMPLATE_TASK}}", template)


def build_post_prompt(
    settings: Settings,
    products: Sequence[Product],
    instructions: Optional[str],
    template_prompt: Optional[str] = None,
    seo_keywords: Any = None,
    include_comparison_cards: bool = False,
) -> str:
    skeleton = resolve_skeleton(template_prompt)
    values = {
        "PRODUCT_DETAILS": format_product_details(products),
        "USER_PROVIDED_TEMPLATE_TASK": DEFAULT_TASK,
        "GENERAL_SETTINGS": settings.general_instructions,
        "SPECIFIC_INSTRUCTIONS": (instructions or "").strip(),
        "TONE_INSTRUCTION": tone_instruction(settings.tone),
        "CTA_TEXT": settings.cta_text,
        "FOOTER_TEXT": settings.footer_text,
        "SEO_KEYWORDS": format_seo_keywords(seo_keywords),
        "COMPARISON_FORMAT_INSTRUCTION": (
            COMPARISON_CARDS_INSTRUCTION if include_comparison_cards else COMPARISON_TABLE_INSTRUCTION
        ),
    }
    prompt = substitute(skeleton, values)
    LOG.debug("Built post prompt (%d chars) for %d product(s)", len(prompt), len(products))
    return prompt.strip()


def build_fetch_prompt(product_url: str) -> str:
    return (
        "You are an expert data extractor. Analyze the content of the provided URL and extract the product's "
        "title, brand, price, a detailed description (summarize the key features and specifications if the "
        "description is long), and the primary high-resolution product image URL. "
        f"URL: {product_url}. Respond ONLY with a single, minified JSON object with the keys: "
        '"title", "brand", "price", "description", "imageUrl". Do not include a markdown block or any other text.'
    )


def build_title_prompt(products: Sequence[Product]) -> str:
    titles = ", ".join(p.display_name for p in products if p.display_name)
    return (
        "You are an expert copywriter. Based on the following products, generate 3 compelling, SEO-friendly "
        "blog post titles. The user wants to compare these products.\n\n"
        f"Products: {titles}\n\n"
        'Respond ONLY with a single, minified JSON array of strings, like ["Title 1", "Title 2", "Title 3"].'
    )


def build_tags_prompt(title: str, content: str) -> str:
    # Long posts are clipped; the opening carries enough signal for keywords.
    excerpt = re.sub(r"<[^>]+>", " ", content or "")
    excerpt = re.sub(r"\s+", " ", excerpt).strip()[:4000]
    return (
        "You are an SEO specialist. Generate 5-7 relevant SEO tags for the blog post below.\n\n"
        f"Title: {title}\n\nContent: {excerpt}\n\n"
        "Respond ONLY with a single, minified JSON array of strings."
    )
