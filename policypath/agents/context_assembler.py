"""
Context Assembler - packages a bounded slice of the conversation for the mentor.

The assembler is a pure function of (history, new input): it never calls the
mentor and never decides on its own whether the input is an answer or a new
topic. That decision is described to the mentor in the instruction block.
"""

from __future__ import annotations

from typing import Optional, Sequence

from langchain_core.prompts import PromptTemplate

from ..config import config
from ..errors import EmptyQueryError
from ..models import Message, TurnPayload

ROLE_LABELS = {"user": "User", "bot": "Mentor"}


class ContextAssembler:
    """
    Builds deterministic mentor payloads for chat turns and quiz requests.

    Usage:
        assembler = ContextAssembler()
        payload = assembler.build_turn(history, "What does Article 21 protect?")
        reply = await mentor.ask(payload.query, payload.history_context, payload.mode)
    """

    def __init__(
        self,
        history_window: Optional[int] = None,
        previous_reply_chars: Optional[int] = None,
    ):
        """
        Initialize assembler.

        Args:
            history_window: Number of trailing messages to include (default from config)
            previous_reply_chars: Truncation length for the previous mentor reply
        """
        conv = config.conversation
        self.history_window = history_window or conv.history_window
        self.previous_reply_chars = previous_reply_chars or conv.previous_reply_chars

        self.turn_prompt = PromptTemplate(
            input_variables=["previous_bot_text", "user_text"],
            template=f"""You are the {conv.product_name} Tutor, an encouraging mentor who teaches the Indian Constitution.

**Your previous message:**
{{previous_bot_text}}

**Learner's new input:**
{{user_text}}

**Instructions:**
1. If your previous message posed a question, treat the learner's new input as an answer to that question and grade it: say whether it is correct and explain why.
2. Otherwise, treat the new input as a request to learn a new topic: explain it clearly with one concrete example, then end with a single short question that checks understanding.
3. Only when the learner has just answered your question correctly, append this block at the very end of your reply, exactly in this format:
{conv.vault_start_marker}Topic: <short title of the concept>
Summary: <one or two sentence summary of what was mastered>{conv.vault_end_marker}
4. Never mention or explain the block above in your visible reply.""",
        )

        self.quiz_prompt = PromptTemplate(
            input_variables=["topics", "num_questions"],
            template="""You are an examiner for the Indian Constitution. Write {num_questions} multiple-choice questions that test the following mastered topics:

{topics}

**Requirements:**
1. Spread the questions across the topics
2. Give each question exactly 4 options
3. Exactly ONE option is correct, and "answer" must repeat that option's text verbatim
4. Make distractors plausible but clearly wrong

**Format your response as a JSON array and nothing else:**
[
  {{"question": "...", "options": ["...", "...", "...", "..."], "answer": "..."}}
]""",
        )

    def build_turn(self, history: Sequence[Message], new_user_text: str) -> TurnPayload:
        """
        Package one chat turn.

        Args:
            history: Conversation so far, oldest first (not including the new input)
            new_user_text: Learner's new message

        Returns:
            TurnPayload ready for the mentor

        Raises:
            EmptyQueryError: If the new input is empty after trimming
        """
        user_text = (new_user_text or "").strip()
        if not user_text:
            raise EmptyQueryError("Query cannot be empty")

        previous_bot_text = self._previous_bot_text(history)
        query = self.turn_prompt.format(
            previous_bot_text=previous_bot_text or "(none - this is a new conversation)",
            user_text=user_text,
        )

        return TurnPayload(
            query=query,
            history_context=self.render_history(history),
            previous_bot_text=previous_bot_text,
        )

    def build_quiz_query(self, topics: Sequence[str], num_questions: Optional[int] = None) -> str:
        """Render the quiz-generation request for the given vault titles."""
        return self.quiz_prompt.format(
            topics="\n".join(f"- {topic}" for topic in topics),
            num_questions=num_questions or config.quiz.max_questions,
        )

    def render_history(self, history: Sequence[Message]) -> str:
        """Render the trailing history window as role-tagged lines, oldest first."""
        window = list(history)[-self.history_window:]
        return "\n".join(f"{ROLE_LABELS[m.role]}: {m.text}" for m in window)

    def _previous_bot_text(self, history: Sequence[Message]) -> Optional[str]:
        last_bot = next((m for m in reversed(history) if m.role == "bot"), None)
        if last_bot is None:
            return None
        return truncate(last_bot.text, self.previous_reply_chars)


def truncate(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."
