"""LLM-backed flows: code projects, images and chat."""
