"""Canned responses served when the aggregator path fails.

Every function returns a fresh copy so callers may mutate the result.
"""

from __future__ import annotations

import copy
import re
from typing import Any

_WORD_PATTERN = re.compile(r"[a-z0-9]+")

_PRODUCT_WORDS = frozenset({"product", "service", "platform", "app", "solution"})
_TECH_WORDS = frozenset({"tech", "technology", "software", "digital", "app", "online"})
_B2B_WORDS = frozenset({"b2b", "business", "enterprise", "company", "corporate"})
_CAMPAIGN_WORDS = frozenset({"campaign", "campaigns", "plan", "planning", "launch"})


_MATRIX_TECH_PRODUCT: dict[str, Any] = {
    "headline": "Transform Your Workflow with Next-Gen Technology",
    "tagline": "Powerful Solutions, Seamless Integration",
    "value_proposition": (
        "Boost productivity and streamline operations with our intuitive platform "
        "designed for modern business needs."
    ),
    "key_messages": [
        "Intuitive interface reduces learning curve by 60%",
        "Enterprise-grade security with SOC 2 compliance",
        "Seamless integration with your existing tech stack",
        "24/7 dedicated support team for all users",
    ],
    "call_to_action": "Schedule your personalized demo today and see the difference.",
    "tone_notes": "Professional tone with focus on efficiency and business benefits.",
}

_MATRIX_B2B: dict[str, Any] = {
    "headline": "Partner with Excellence, Grow with Confidence",
    "tagline": "Your Success, Our Priority",
    "value_proposition": (
        "End-to-end business solutions tailored to your industry, designed to scale with your growth."
    ),
    "key_messages": [
        "Custom solutions built for your specific industry challenges",
        "Proven track record with 94% client retention rate",
        "Dedicated account management throughout our partnership",
        "Data-driven approach to maximize your ROI",
    ],
    "call_to_action": "Let's discuss how we can help you reach your business goals.",
    "tone_notes": "Confident, consultative tone emphasizing partnership and expertise.",
}

_MATRIX_DEFAULT: dict[str, Any] = {
    "headline": "Elevate Your Brand's Potential",
    "tagline": "Stand Out in a Crowded Market",
    "value_proposition": (
        "Captivating messaging that resonates with your audience and drives meaningful engagement."
    ),
    "key_messages": [
        "Tailored communication strategies for your unique brand voice",
        "Data-driven content that converts casual browsers to loyal customers",
        "Comprehensive approach covering all marketing touchpoints",
        "Agile methodology that adapts to market trends and audience feedback",
    ],
    "call_to_action": "Transform your marketing approach today.",
    "tone_notes": "Professional yet approachable tone balancing authority with accessibility.",
}

_MAX_CAMPAIGN_PLAN: dict[str, Any] = {
    "campaign_name": "Refill Revolution: The EcoFlow Challenge",
    "campaign_goal": "Generate 10,000 new customers while educating audiences about plastic pollution impact",
    "campaign_timeline": "8-week campaign launching Earth Month (April)",
    "channel_strategy": {
        "social_media": {
            "instagram": "Visual challenges tracking plastic reduction with branded hashtag #RefillRevolution",
            "tiktok": "Influencer partnerships demonstrating EcoFlow bottle features in creative ways",
        },
        "email": "Drip campaign sharing plastic pollution facts and personal impact calculations",
        "partnerships": "Collaborations with environmental nonprofits and outdoor retailers",
    },
    "content_needs": [
        "Before/after plastic waste visualization graphics",
        "User testimonial videos focused on environmental impact",
        "30-second product demonstration showing thermal features",
        "Downloadable plastic-reduction tracking calendar",
    ],
}

_MAX_DOCUMENT_SHEET: dict[str, Any] = {
    "document_title": "EcoFlow Water Bottles: Product Information Sheet",
    "sections": [
        {
            "heading": "Product Overview",
            "content": (
                "EcoFlow water bottles represent the pinnacle of sustainable hydration solutions. "
                "Crafted from 100% recycled materials, each bottle features double-wall vacuum "
                "insulation, premium leak-proof design, and comes with our unmatched lifetime warranty."
            ),
        },
        {
            "heading": "Key Features",
            "content": (
                "• Made from 100% post-consumer recycled stainless steel\n"
                "• Prevents 167 single-use plastic bottles annually per user\n"
                "• Keeps beverages cold for 24 hours or hot for 12 hours\n"
                "• Dishwasher safe and BPA-free\n"
                "• Available in 18oz, 24oz, and 32oz sizes\n"
                "• Five premium colorways inspired by natural landscapes"
            ),
        },
        {
            "heading": "Environmental Impact",
            "content": (
                "Every EcoFlow bottle is carbon-neutral from production to delivery. Our manufacturing "
                "process uses 87% less water and 70% less energy than conventional water bottles. "
                "Through our partnership with Ocean Cleanup Initiative, each purchase funds the "
                "removal of 5 pounds of plastic from marine environments."
            ),
        },
    ],
}

_GENERATION_VARIATIONS: dict[str, Any] = {
    "variations": [
        {
            "content": (
                "Experience the future of hydration with our eco-friendly water bottles. "
                "Made from recycled materials, designed for your lifestyle."
            ),
            "notes": "Emphasizes sustainability and modern design",
        },
        {
            "content": (
                "Stay hydrated, save the planet. Our water bottles are as kind to Earth "
                "as they are to your hydration needs."
            ),
            "notes": "Simple, direct messaging focusing on dual benefits",
        },
        {
            "content": (
                "Quench your thirst, nourish our planet. Revolutionary eco-bottles for the conscious consumer."
            ),
            "notes": "Appeals to environmentally-aware customers",
        },
    ]
}


def matrix_variant(prompt: str) -> str:
    """Pick the canned messaging variant by sniffing prompt words: tech_product, b2b or default."""
    words = set(_WORD_PATTERN.findall(prompt.lower()))
    if words & _PRODUCT_WORDS and words & _TECH_WORDS:
        return "tech_product"
    if words & _B2B_WORDS:
        return "b2b"
    return "default"


_MATRIX_VARIANTS = {
    "tech_product": _MATRIX_TECH_PRODUCT,
    "b2b": _MATRIX_B2B,
    "default": _MATRIX_DEFAULT,
}


def matrix_fallback(prompt: str) -> dict[str, Any]:
    return copy.deepcopy(_MATRIX_VARIANTS[matrix_variant(prompt)])


def max_variant(prompt: str) -> str:
    """Campaign-planning prompts get the campaign plan, everything else the document sheet."""
    words = set(_WORD_PATTERN.findall(prompt.lower()))
    return "campaign_plan" if words & _CAMPAIGN_WORDS else "document"


_MAX_VARIANTS = {
    "campaign_plan": _MAX_CAMPAIGN_PLAN,
    "document": _MAX_DOCUMENT_SHEET,
}


def max_fallback(prompt: str = "") -> dict[str, Any]:
    return copy.deepcopy(_MAX_VARIANTS[max_variant(prompt)])


def generation_fallback() -> dict[str, Any]:
    """Canned copy variations for the generic generation endpoint."""
    return copy.deepcopy(_GENERATION_VARIATIONS)
