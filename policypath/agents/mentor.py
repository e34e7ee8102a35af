"""
Mentor client - the remote language model behind the tutor.

The mentor is treated as an opaque text generator. In chat mode its answer
may carry the hidden vault block; in quiz mode it is expected to be a JSON
array of questions, optionally fenced in a code block.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import openai
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..config import config, token_tracker
from ..errors import TransportError
from ..models.conversation import TurnMode

_LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPTS = {
    "chat": (
        "You are a patient tutor for the Indian Constitution. Keep replies short, "
        "accurate and encouraging, and follow the learner-facing instructions exactly."
    ),
    "quiz": (
        "You generate multiple-choice exams. Reply with valid JSON only, "
        "with no commentary before or after it."
    ),
}


class MentorClient:
    """
    Async client for the remote mentor.

    Features:
    - Separate temperatures for tutoring and quiz generation
    - Request timeout and SDK-level retries from config
    - Transport failures normalised to TransportError
    - Token usage recorded in the global token tracker
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        chat_temperature: Optional[float] = None,
        quiz_temperature: Optional[float] = None,
    ):
        """
        Initialize mentor client.

        Args:
            model_name: LLM model name (default from config)
            chat_temperature: Temperature for tutoring turns
            quiz_temperature: Temperature for quiz generation
        """
        self.model_name = model_name or config.model.model_name
        self.chat_llm = self._build_llm(
            config.model.chat_temperature if chat_temperature is None else chat_temperature
        )
        self.quiz_llm = self._build_llm(
            config.model.quiz_temperature if quiz_temperature is None else quiz_temperature
        )

    def _build_llm(self, temperature: float) -> ChatOpenAI:
        return ChatOpenAI(
            model=self.model_name,
            temperature=temperature,
            api_key=config.model.api_key,
            base_url=config.model.base_url,
            max_tokens=config.model.max_tokens,
            timeout=config.model.request_timeout,
            max_retries=config.model.max_retries,
        )

    async def ask(self, query: str, history_context: str = "", mode: TurnMode = "chat") -> str:
        """
        Send one request to the mentor.

        Args:
            query: Prompt text for this turn
            history_context: Role-tagged recent conversation lines
            mode: "chat" for tutoring, "quiz" for quiz generation

        Returns:
            The mentor's raw answer text

        Raises:
            TransportError: If the mentor cannot be reached or times out
        """
        if mode not in SYSTEM_PROMPTS:
            raise ValueError(f"Unknown mentor mode: {mode}")

        messages = [SystemMessage(content=SYSTEM_PROMPTS[mode])]
        if history_context:
            messages.append(SystemMessage(content=f"Recent conversation:\n{history_context}"))
        messages.append(HumanMessage(content=query))

        llm = self.quiz_llm if mode == "quiz" else self.chat_llm
        try:
            response = await asyncio.wait_for(
                llm.ainvoke(messages), timeout=config.model.request_timeout
            )
        except asyncio.TimeoutError as e:
            _LOGGER.warning("Mentor request timed out after %.1fs", config.model.request_timeout)
            raise TransportError("The mentor took too long to respond. Please try again.") from e
        except openai.APIError as e:
            _LOGGER.warning("Mentor request failed: %s", e)
            raise TransportError("The mentor is unreachable right now. Please try again.") from e

        self._record_usage(response)
        return response.content if isinstance(response.content, str) else str(response.content)

    def _record_usage(self, response) -> None:
        usage = getattr(response, "usage_metadata", None)
        if not usage or not config.logging.log_tokens:
            return
        token_tracker.add_tokens(usage.get("input_tokens", 0), usage.get("output_tokens", 0))
        _LOGGER.debug(
            "Mentor usage: %s input / %s output tokens",
            usage.get("input_tokens", 0),
            usage.get("output_tokens", 0),
        )
