"""
Bridge between stored AI chat history and the hosted model.

The OpenAI client is handed in by the caller (the application lifespan builds
one from settings), so tests pass a mock and no module holds a global client.
"""

from typing import Any, List, Optional, Sequence

import structlog
from openai import AsyncOpenAI, OpenAIError

from libs.common.errors import UpstreamError
from libs.models.firestore import AiChatMessage

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a supportive sports coaching assistant talking with a player. "
    "Answer clearly and briefly, and suggest talking to their coach for anything medical."
)


class ChatBridge:
    """
    Sends a player's prompt, with the prior turns, to the Responses API.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        max_output_tokens: int = 800,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.system_prompt = system_prompt

    def _build_input(self, prompt: str, history: Sequence[AiChatMessage]) -> List[dict]:
        """Responses API input: system prompt, prior turns, then the new prompt."""
        items = [{"role": "system", "content": self.system_prompt}]
        items.extend({"role": turn.role, "content": turn.text} for turn in history)
        items.append({"role": "user", "content": prompt})
        return items

    def _extract_output_text(self, response: Any) -> str:
        text_val = getattr(response, "output_text", None)
        if isinstance(text_val, str):
            return text_val.strip()
        return ""

    async def generate(self, prompt: str, history: Optional[Sequence[AiChatMessage]] = None) -> str:
        """Returns the model's reply to ``prompt``.

        Raises:
            UpstreamError: If the provider call fails or returns no text
        """
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=self._build_input(prompt, history or []),
                max_output_tokens=self.max_output_tokens,
                store=False,
            )
        except OpenAIError as e:
            logger.error("AI generation failed", model=self.model, error=str(e), error_type=type(e).__name__)
            raise UpstreamError("AI assistant is unavailable") from e

        output_text = self._extract_output_text(response)
        if not output_text:
            logger.error("AI generation returned no text", model=self.model)
            raise UpstreamError("AI assistant returned an empty reply")

        logger.info("AI reply generated", model=self.model, history_turns=len(history or []))
        return output_text
