"""
Text-completion collaborators.

- client.py: OpenAI-compatible async client with ordered model fallback
- offline.py: deterministic client for runs without an API key
"""
