from __future__ import annotations

from affiliate_posts.domain.models import Product, Settings
from affiliate_posts.generation.prompt import (
    COMPARISON_CARDS_INSTRUCTION,
    COMPARISON_TABLE_INSTRUCTION,
    DEFAULT_TASK,
    FALLBACKS,
    PLACEHOLDER_RE,
    TONE_DEFAULT,
    build_post_prompt,
    build_tags_prompt,
    format_product_details,
    format_seo_keywords,
    resolve_skeleton,
    substitute,
)


def _products() -> list:
    return [
        Product(
            id="p1",
            name="Widget",
            title="Widget 3000",
            brand="Acme",
            price="$19.99",
            affiliate_link="https://example.com/aff/widget",
            image_url="https://example.com/widget.jpg",
            description="A very useful widget.",
            category="Electronics",
        ),
        Product(id="p2", name="Gadget", other_info="Ships in two days"),
    ]


def test_default_prompt_has_no_unresolved_placeholders() -> None:
    prompt = build_post_prompt(Settings(), _products(), None)

    assert PLACEHOLDER_RE.search(prompt) is None
    assert DEFAULT_TASK in prompt
    assert TONE_DEFAULT in prompt
    assert FALLBACKS["SPECIFIC_INSTRUCTIONS"] in prompt
    assert COMPARISON_TABLE_INSTRUCTION in prompt
    assert "Product 1:" in prompt and "Product 2:" in prompt


def test_settings_and_instructions_flow_into_prompt() -> None:
    settings = Settings(general_instructions="Write in short paragraphs.", tone="witty", cta_text="Grab it")
    prompt = build_post_prompt(
        settings,
        _products(),
        "Mention the warranty.",
        seo_keywords={"primary": "best widget", "secondary": "widget review"},
        include_comparison_cards=True,
    )

    assert "Write in short paragraphs." in prompt
    assert "Mention the warranty." in prompt
    assert "The overall tone of the post must be: witty." in prompt
    assert '"Grab it"' in prompt
    assert "Primary: best widget; Secondary: widget review" in prompt
    assert COMPARISON_CARDS_INSTRUCTION in prompt
    assert COMPARISON_TABLE_INSTRUCTION not in prompt


def test_plain_template_becomes_core_task() -> None:
    task = "Write a Top 3 listicle with a budget pick."
    prompt = build_post_prompt(Settings(), _products(), None, template_prompt=task)

    assert task in prompt
    assert DEFAULT_TASK not in prompt
    assert "CRITICAL OUTPUT RULES" in prompt


def test_template_with_product_details_is_a_full_skeleton() -> None:
    template = "Review these:\n{{PRODUCT_DETAILS}}\nTone: {{TONE_INSTRUCTION}} {{NOT_A_TOKEN}}"
    assert resolve_skeleton(template) == template

    prompt = build_post_prompt(Settings(tone="casual"), _products(), None, template_prompt=template)

    assert prompt.startswith("Review these:")
    assert "CRITICAL OUTPUT RULES" not in prompt
    assert "The overall tone of the post must be: casual." in prompt
    assert "NOT_A_TOKEN" not in prompt


def test_substituted_values_are_not_rescanned() -> None:
    out = substitute("A {{X}} B {{Y}}", {"X": "{{Y}}", "Y": "y"})
    assert out == "A {{Y}} B y"


def test_empty_values_use_fallbacks() -> None:
    out = substitute("{{GENERAL_SETTINGS}}|{{CTA_TEXT}}", {"GENERAL_SETTINGS": "", "CTA_TEXT": ""})
    assert out == f"{FALLBACKS['GENERAL_SETTINGS']}|{FALLBACKS['CTA_TEXT']}"


def test_product_details_mark_missing_fields() -> None:
    details = format_product_details(_products())

    assert "- Name/Title: Widget" in details
    assert "- Affiliate Link: https://example.com/aff/widget" in details
    assert "Product 2:\n- Name/Title: Gadget\n- Brand: N/A" in details
    assert "- Additional Info: Ships in two days" in details


def test_seo_keywords_shapes() -> None:
    assert format_seo_keywords(None) == ""
    assert format_seo_keywords("  one, two ") == "one, two"
    assert format_seo_keywords(["one", " ", "two"]) == "one, two"
    assert format_seo_keywords({"primary": "main"}) == "Primary: main"


def test_tags_prompt_strips_html() -> None:
    prompt = build_tags_prompt("Best Widgets", "<p>Great <b>widget</b></p>")
    assert "Content: Great widget" in prompt
    assert "<p>" not in prompt


def test_empty_footer_stays_empty() -> None:
    prompt = build_post_prompt(Settings(footer_text=""), _products(), None)

    assert 'text-align: center;"></p>' in prompt
    assert "Thanks for reading." not in prompt
