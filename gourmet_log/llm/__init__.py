"""
Groq LLM integration.

Responsibilities:
- Hold the Groq credentials and model choices.
- Recommend up to five of a user's own favorites for a chat request.
- Write a short introduction for a restaurant.
- Return a fallback answer when the LLM is unavailable or returns invalid output.

The web-search fallback in ``search.web_search`` shares this configuration.
"""
