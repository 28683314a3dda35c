"""
Restaurant search.

Responsibilities:
- Query the Hotpepper Gourmet API for structured restaurant data.
- Fall back to an LLM-driven web search when Hotpepper has nothing.
- Merge both result sets without duplicates and scope them to the query.
"""
