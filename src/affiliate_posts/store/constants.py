from __future__ import annotations

from typing import Dict, Tuple

SETTINGS_KEY = "app_settings"

# Columns added after the first schema version: table -> {column: type}.
ADDED_COLUMNS: Dict[str, Dict[str, str]] = {
    "posts": {
        "asins": "TEXT",
        "labels": "TEXT",
        "metaDescription": "TEXT",
        "socialMediaSnippets": "TEXT",
    },
    "products": {
        "otherInfo": "TEXT",
    },
}

# (name, prompt) pairs seeded into an empty templates table.
DEFAULT_TEMPLATES: Tuple[Tuple[str, str], ...] = (
    (
        "Versus (Standard)",
        "Write a comprehensive blog post comparing Product 1 and Product 2. Cover their key features, "
        "performance, design, and value. Conclude with a recommendation for different types of users.",
    ),
    (
        "Top 3 List (Best Overall, Best Budget, Best Premium)",
        'Create a "Top 3" listicle for the provided products. Identify the "Best Overall", "Best for Budget", '
        'and "Best Premium Option". Justify your choices with detailed explanations.',
    ),
    (
        "Top 5 List (Ranked)",
        'Generate a ranked "Top 5" list of the given products. Start with an introduction, then present each '
        "product from #5 to #1, explaining its pros and cons. Conclude with a summary table.",
    ),
    (
        "Detailed Single Product Review",
        "Write an in-depth review of the first product provided. Cover its design, features, performance, "
        "user experience, and who it's best for. If other products are provided, use them as points of comparison.",
    ),
    (
        "Problem/Solution Format",
        'Structure the blog post in a "Problem/Solution" format. Start by describing a common problem the target '
        "audience faces. Then, present each product as a potential solution, explaining how its features address the problem.",
    ),
    (
        "Feature Deep-Dive Comparison",
        "Instead of a general overview, do a deep-dive comparison of 2-3 specific features across all the products.",
    ),
    (
        "Beginner's Guide",
        "Write a beginner's guide to this product category. Introduce the basic concepts, then explain how each "
        "of the provided products fits into the landscape for a newcomer.",
    ),
    (
        "Upgrade Guide (Is it worth it?)",
        "Frame the post as an upgrade guide. Assume the reader owns an older version of this type of product. "
        "Compare the new products and help the reader decide if it's worth upgrading.",
    ),
    (
        "Pros and Cons Focus",
        'The main focus of the article should be a clear, balanced "Pros and Cons" list for each product. Write a '
        "brief intro and conclusion, but the bulk of the content should be the pro/con lists.",
    ),
    (
        "Head-to-Head Battle",
        'Write the post as a "Head-to-Head Battle". Create distinct rounds for the comparison (e.g., Round 1: '
        'Design, Round 2: Performance). Declare a "winner" for each round and an overall champion.',
    ),
    (
        "Quick Roundup (Less Detail)",
        'Generate a "Quick Roundup". The post should be shorter and more scannable. Use bullet points heavily '
        "and focus on the most important highlights of each product rather than deep detail.",
    ),
    (
        "Gift Guide Format",
        "Write the post as a gift guide. Frame the products as potential gifts and explain who the ideal "
        "recipient would be for each one.",
    ),
    (
        "Value for Money Analysis",
        'Focus the entire post on analyzing the "value for money" of each product. Compare their features '
        "directly against their price points to determine which offers the best bang for the buck.",
    ),
)
