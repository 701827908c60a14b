"""LLM service wrapper for an OpenAI-compatible chat completions API."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from ragcache.services.circuit_breaker import CircuitBreaker, llm_circuit

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error generating response: "

SYSTEM_PROMPT = """# Candidate Listing System

You are a resume data extraction system that lists all candidate profiles that match a given query. Your purpose is to extract and display relevant candidate information without analysis, ranking, or conversation. If the context is empty or contains nothing relevant, answer the question briefly from general knowledge.

## Output Format Requirements

Return your answer strictly in valid HTML:
- Begin with a very brief introduction such as "Here are the candidates that match your query:"
- Use <div class="candidates-list"> to contain the entire list
- Use <div class="candidate"> for each candidate profile
- Use <h3> for candidate names
- Use paragraphs (<p>) with <strong> tags for information categories (Experience, Skills, Education, Background)
- Do not include analysis, commentary, questions, rankings or scores
- Do not use code fences or Markdown

## Processing Guidelines

1. Extract ALL candidate profiles from the context that match the query
2. Present the same details for each candidate in a consistent format
3. Keep descriptions factual and concise
4. Include every matching candidate, not just the top matches"""


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation call: either answer text or an error."""

    ok: bool
    text: str = ""
    error: str | None = None

    @classmethod
    def success(cls, text: str) -> "GenerationResult":
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, error: str) -> "GenerationResult":
        return cls(ok=False, error=error)

    @property
    def message(self) -> str:
        """Text to show the caller: the answer, or a readable error line."""
        if self.ok:
            return self.text
        return f"{ERROR_PREFIX}{self.error}"


def build_context(documents: Sequence[str]) -> str:
    """Join document contents with newlines; empty when nothing was retrieved."""
    return "\n".join(doc or "" for doc in documents)


class LLMService:
    """Async OpenAI client wrapper for grounded answer generation."""

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.3-70b-versatile",
        base_url: str | None = None,
        temperature: float = 0.5,
        max_tokens: int = 1024,
        system_prompt: str = SYSTEM_PROMPT,
        circuit: CircuitBreaker | None = None,
        client: AsyncOpenAI | None = None,
    ):
        if client is None and not api_key:
            raise RuntimeError("Missing LLM API key. Set LLM_API_KEY or GROQ_API_KEY.")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt
        self.circuit = circuit or llm_circuit()
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def generate(self, documents: Sequence[str], query: str) -> GenerationResult:
        """
        Generate an answer to query grounded in the retrieved documents.

        Args:
            documents: Retrieved document contents, in ranked order
            query: User question

        Returns:
            GenerationResult; API failures are returned, not raised
        """
        context = build_context(documents)

        if not self.circuit.is_available():
            logger.warning("LLM circuit breaker is OPEN, skipping generation")
            return GenerationResult.failure("LLM service temporarily unavailable")

        logger.info(f"Generating response for query: {query[:100]}...")
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": f"Context: {context}\n\nQuestion: {query}"},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.RateLimitError as e:
            self.circuit.record_failure()
            logger.error(f"LLM rate limit error: {e}")
            return GenerationResult.failure(f"Rate limit exceeded: {e}")
        except openai.APIError as e:
            self.circuit.record_failure()
            logger.error(f"LLM API error: {e}")
            return GenerationResult.failure(str(e))

        self.circuit.record_success()
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            logger.warning("LLM returned an empty completion")
            return GenerationResult.failure("No response generated")
        return GenerationResult.success(content)

    async def close(self) -> None:
        await self.client.close()
