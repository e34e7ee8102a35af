"""
Unit tests for the mentor client.

ChatOpenAI is patched; no network calls are made.
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
from langchain_core.messages import HumanMessage, SystemMessage

from policypath.agents.mentor import MentorClient
from policypath.config import token_tracker
from policypath.errors import TransportError


def ai_message(content, input_tokens=12, output_tokens=30):
    message = MagicMock()
    message.content = content
    message.usage_metadata = {"input_tokens": input_tokens, "output_tokens": output_tokens}
    return message


class TestMentorClient(unittest.IsolatedAsyncioTestCase):
    """Test MentorClient."""

    def setUp(self):
        patcher = patch("policypath.agents.mentor.ChatOpenAI")
        self.mock_chat = patcher.start()
        self.addCleanup(patcher.stop)

        self.chat_llm = MagicMock()
        self.chat_llm.ainvoke = AsyncMock(return_value=ai_message("Article 21 protects life."))
        self.quiz_llm = MagicMock()
        self.quiz_llm.ainvoke = AsyncMock(return_value=ai_message("[]"))
        self.mock_chat.side_effect = [self.chat_llm, self.quiz_llm]

        self.mentor = MentorClient(model_name="gpt-4o-mini", chat_temperature=0.7, quiz_temperature=0.2)

    def test_builds_one_llm_per_mode(self):
        self.assertEqual(self.mock_chat.call_count, 2)
        temperatures = [call.kwargs["temperature"] for call in self.mock_chat.call_args_list]
        self.assertEqual(temperatures, [0.7, 0.2])
        self.assertEqual(self.mock_chat.call_args_list[0].kwargs["model"], "gpt-4o-mini")

    async def test_chat_request(self):
        answer = await self.mentor.ask("Explain Article 21", "User: hi\nMentor: hello", "chat")

        self.assertEqual(answer, "Article 21 protects life.")
        messages = self.chat_llm.ainvoke.await_args.args[0]
        self.assertIsInstance(messages[0], SystemMessage)
        self.assertIn("User: hi", messages[1].content)
        self.assertIsInstance(messages[-1], HumanMessage)
        self.assertEqual(messages[-1].content, "Explain Article 21")
        self.quiz_llm.ainvoke.assert_not_awaited()

    async def test_quiz_request_uses_quiz_llm(self):
        await self.mentor.ask("Write a quiz", mode="quiz")
        self.quiz_llm.ainvoke.assert_awaited_once()
        messages = self.quiz_llm.ainvoke.await_args.args[0]
        self.assertEqual(len(messages), 2)
        self.assertIn("JSON", messages[0].content)

    async def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            await self.mentor.ask("hi", mode="essay")

    async def test_api_error_becomes_transport_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        self.chat_llm.ainvoke.side_effect = openai.APIConnectionError(request=request)
        with self.assertRaises(TransportError):
            await self.mentor.ask("hi")

    async def test_timeout_becomes_transport_error(self):
        self.chat_llm.ainvoke.side_effect = asyncio.TimeoutError()
        with self.assertRaises(TransportError):
            await self.mentor.ask("hi")

    async def test_usage_recorded(self):
        await self.mentor.ask("hi")
        stats = token_tracker.get_stats()
        self.assertEqual(stats["calls"], 1)
        self.assertEqual(stats["input_tokens"], 12)
        self.assertEqual(stats["output_tokens"], 30)


if __name__ == "__main__":
    unittest.main()
