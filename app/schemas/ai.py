from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Prompts are optional at the schema level so that an empty or missing
# prompt yields the same 400 "Prompt is required" as a whitespace one.


class AgentRequest(BaseModel):
    prompt: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class AgentResponse(BaseModel):
    content: str
    data: dict[str, Any]
    agent: str
    source: str
    model: str | None = None
    usage: dict[str, Any] | None = None
    fallback: bool
    degraded: bool
    success: bool = True
    processingTime: int


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    prompt: str | None = None
    system_prompt: str = Field("", alias="systemPrompt")
    model: str | None = None
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    response_format: str | dict[str, Any] | None = Field(None, alias="responseFormat")


class ImageRequest(BaseModel):
    prompt: str | None = None
    n: int = Field(1, ge=1, le=4)
    size: str = Field("1024x1024", pattern=r"^\d+x\d+$")
    quality: str = Field("standard", pattern=r"^(standard|hd)$")


class ImageResult(BaseModel):
    url: str | None = None
    revised_prompt: str | None = None


class ProviderInfo(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    name: str
    configured: bool
    default_model: str
