"""Chat with your documents.

All of the caller's documents are concatenated into one prompt and sent to
the LLM as a streamed completion. Nothing about the conversation is stored
server-side.
"""

import asyncio
import logging
import time
from typing import Optional

from groq import Groq
from sqlalchemy.orm import Session

from .config import LLMConfig
from .database import Document, DocumentCRUD
from .errors import NotFoundError, ServiceUnavailableError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


def build_context(documents: list[Document]) -> str:
    return " ".join(f"Title: {doc.filename}, Content: {doc.content}" for doc in documents)


def build_prompt(context: str, question: str, max_lines: int = 5) -> str:
    return (
        f"Using the following PDFs: {context}, answer the question: {question}."
        f"Give the response in not more than {max_lines} lines.Keep it direct."
    )


def create_llm_client(config: LLMConfig) -> Optional[Groq]:
    """Build the Groq client when an API key is configured."""
    if not config.groq_api_key:
        logger.info("Groq API key not configured. Chat endpoint will be disabled.")
        return None
    client = Groq(api_key=config.groq_api_key)
    logger.info(f"Groq LLM initialized with model: {config.model}")
    return client


class ChatService:
    """Answers questions from the text of the caller's documents."""

    def __init__(self, llm_client, config: LLMConfig):
        self.llm_client = llm_client
        self.config = config

    async def ask(self, db: Session, owner_id: int, question: Optional[str]) -> str:
        if not question or not question.strip():
            raise ValidationError("Question is required")

        documents = DocumentCRUD.list_for_owner(db, owner_id)
        if not documents:
            raise NotFoundError("No PDFs found for the user.")

        if self.llm_client is None:
            raise ServiceUnavailableError("LLM not configured. Set GROQ_API_KEY.")

        prompt = build_prompt(build_context(documents), question, self.config.max_lines)

        start_time = time.time()
        loop = asyncio.get_running_loop()
        try:
            reply = await loop.run_in_executor(None, self._complete, prompt)
        except Exception as e:
            logger.error(f"Error chatting with PDF: {e}")
            raise UpstreamError("Failed to chat with PDF") from e

        logger.info(
            "chat_metrics",
            extra={
                "event": "chat_metrics",
                "owner_id": owner_id,
                "documents": len(documents),
                "prompt_chars": len(prompt),
                "reply_chars": len(reply),
                "duration_ms": int((time.time() - start_time) * 1000),
            }
        )
        return reply

    def _complete(self, prompt: str) -> str:
        stream = self.llm_client.chat.completions.create(
            messages=[{"role": "user", "content": prompt}],
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            stream=True,
        )

        parts = []
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                parts.append(delta)
        return "".join(parts)
