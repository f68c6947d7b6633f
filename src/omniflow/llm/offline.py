# src/omniflow/llm/offline.py

from __future__ import annotations


class OfflineCompletionClient:
    """
    Offline deterministic completion client used for demos when no external API is configured.

    Echoes a short, clearly-labelled response so tasks and ai-process steps
    still complete end to end.
    """

    async def complete(
            self,
            system_prompt: str,
            user_prompt: str,
            *,
            max_tokens: int,
            temperature: float,
    ) -> str:
        preview = " ".join((user_prompt or "").split())
        if len(preview) > 280:
            preview = preview[:280] + "…"
        return (
            "Offline demo mode: no external LLM is configured.\n"
            "Set OMNIFLOW_OPENAI_API_KEY (and OMNIFLOW_LLM_MODELS) to enable real responses.\n\n"
            f"Request: {preview}"
        )
