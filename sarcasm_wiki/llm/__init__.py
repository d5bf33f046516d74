"""LLM backends and prompts."""
