"""Agent definitions — the single authoritative copy of prompt templates,
temperatures and provider routing for Maven, Matrix and Max.

Templates use ``string.Template`` placeholders ($tone, $target_audience ...)
so the literal JSON braces in the instructions need no escaping.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from string import Template
from typing import Any

from app.core.config import Settings
from app.gateway.fallbacks import matrix_fallback, max_fallback
from app.gateway.types import AgentName, ProviderName

# Not user-configurable
AGENT_TEMPERATURES: dict[AgentName, float] = {
    AgentName.MAVEN: 0.3,
    AgentName.MATRIX: 0.7,
    AgentName.MAX: 0.5,
}

PARAM_DEFAULTS: dict[str, str] = {
    "tone": "professional",
    "targetAudience": "general",
    "brandStyle": "professional",
    "contentType": "marketing",
}

# (param key, label) in the order the context lines are appended
_CONTEXT_LINES: tuple[tuple[str, str], ...] = (
    ("targetAudience", "Target Audience"),
    ("tone", "Tone"),
    ("brandStyle", "Brand Style"),
    ("contentType", "Content Type"),
    ("campaignGoal", "Campaign Goal"),
    ("channels", "Channels"),
    ("additionalContext", "Additional Context"),
)


MAVEN_SYSTEM = Template(
    """You are Maven, an expert AI marketing agent specialized in market research and competitive intelligence.
You analyze market trends, competitor positioning, and customer sentiments to provide factual insights.
You always cite your sources and provide data-backed recommendations.

Always structure your response as a comprehensive JSON object with these specific sections:
- title: Title of your research report
- summary: A brief 1-2 sentence overview of your findings
- key_findings: An array of 3-5 most important discoveries from your research
- trends: An array of 3-5 market trends related to the topic
- analysis: A detailed analysis with at least 3 paragraphs examining the topic in depth
- recommendations: An array of 3-5 data-backed recommendations for marketing strategy
- sources: An array of {"title": ..., "url": ...} objects for every source you used

Include relevant statistics and market data whenever possible."""
)

MAVEN_USER = Template(
    """I need comprehensive research on: "$prompt"

Please follow these steps:
1. Search for the most current and reliable information on this topic
2. Pay special attention to recent market trends, statistics, and expert insights
3. Analyze the information and identify key patterns and insights
4. Provide specific recommendations based on the findings

Format your response as JSON with these sections:
{
  "title": "A descriptive title for this research",
  "summary": "A brief 1-2 sentence overview of your findings",
  "key_findings": ["3-5 most important discoveries, with specific statistics when available"],
  "trends": ["3-5 current market trends related to the topic"],
  "analysis": "A detailed analysis with multiple paragraphs examining the topic in depth",
  "recommendations": ["3-5 data-backed recommendations"],
  "sources": [{"title": "Source name", "url": "URL of the source"}]
}

Important: Include only factual information that can be verified and cite specific sources."""
)

MATRIX_SYSTEM = Template(
    """You are Matrix, an expert AI marketing agent specialized in crafting compelling messaging and positioning.
You create persuasive copy tailored to specific audiences while maintaining brand voice consistency.
Your specialty is adapting tone and style to match $tone tone for $target_audience audiences.

Always respond with a well-structured JSON object containing these sections:
- headline: A captivating main headline for the messaging
- tagline: A short, memorable phrase that reinforces the headline
- value_proposition: A clear statement of the value offered to customers
- key_messages: An array of 3-5 important points to communicate
- call_to_action: A compelling statement to prompt the desired action
- tone_notes: Brief notes about the tone used in the messaging

Ensure your messaging is focused, specific, and valuable to the target audience."""
)

MAX_SYSTEM = Template(
    """You are Max, an expert AI marketing agent specialized in campaign planning and structured marketing documents.
You create well-organized content for $content_type materials following $brand_style brand guidelines.
When asked for a campaign, develop a plan with a clear goal, timeline, channel strategy and content needs.
Your output should be comprehensive and ready for minimal editing.
Return your response as a structured JSON object with sections that can be directly applied to templates."""
)

PASSTHROUGH_USER = Template("$prompt")


def _param(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return PARAM_DEFAULTS.get(key, "")
    return _format_value(value)


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value).strip()


def context_lines(params: Mapping[str, Any]) -> str:
    """Render one ``Label: value`` line per recognized, present parameter."""
    lines = []
    for key, label in _CONTEXT_LINES:
        value = params.get(key)
        if value is None or value == "" or value == []:
            continue
        lines.append(f"{label}: {_format_value(value)}")
    return "\n".join(lines)


@dataclass(frozen=True)
class AgentSpec:
    """Everything the dispatcher needs to run one agent."""

    name: AgentName
    provider: ProviderName
    system_template: Template
    user_template: Template
    model_setting: str  # attribute name on Settings
    max_tokens: int | None = None  # None = settings.openrouter_max_tokens
    top_p: float = 1.0
    json_mode: bool = True
    fallback: Callable[[str], dict[str, Any]] | None = None  # None = errors surface to the caller

    @property
    def temperature(self) -> float:
        return AGENT_TEMPERATURES[self.name]

    def model(self, settings: Settings) -> str:
        return getattr(settings, self.model_setting)

    def render_system(self, params: Mapping[str, Any]) -> str:
        system = self.system_template.safe_substitute(
            tone=_param(params, "tone"),
            target_audience=_param(params, "targetAudience"),
            brand_style=_param(params, "brandStyle"),
            content_type=_param(params, "contentType"),
        )
        context = context_lines(params)
        return f"{system}\n{context}" if context else system

    def render_user(self, prompt: str) -> str:
        return self.user_template.safe_substitute(prompt=prompt)


AGENT_REGISTRY: dict[AgentName, AgentSpec] = {
    AgentName.MAVEN: AgentSpec(
        name=AgentName.MAVEN,
        provider=ProviderName.GEMINI,
        system_template=MAVEN_SYSTEM,
        user_template=MAVEN_USER,
        model_setting="maven_model",
        max_tokens=8192,
        top_p=0.8,
    ),
    AgentName.MATRIX: AgentSpec(
        name=AgentName.MATRIX,
        provider=ProviderName.OPENROUTER,
        system_template=MATRIX_SYSTEM,
        user_template=PASSTHROUGH_USER,
        model_setting="matrix_model",
        fallback=matrix_fallback,
    ),
    AgentName.MAX: AgentSpec(
        name=AgentName.MAX,
        provider=ProviderName.OPENROUTER,
        system_template=MAX_SYSTEM,
        user_template=PASSTHROUGH_USER,
        model_setting="max_model",
        fallback=max_fallback,
    ),
}


def get_agent_spec(name: AgentName) -> AgentSpec:
    return AGENT_REGISTRY[name]
