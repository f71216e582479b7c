"""AI Agent Gateway.

Dispatches marketing agent requests to hosted LLM providers:
  - Provider Adapters (OpenAI, OpenRouter, Gemini) behind one complete() contract
  - Agent Dispatcher (templates, routing, research errors, canned fallbacks)
  - Response Normalizer (HTML detection, JSON extraction, field repair)
  - Generic generation passthrough (completions, images, key checks)
"""
