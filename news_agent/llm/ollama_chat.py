"""
Ollama Chat Service

Text-generation and HTML-structuring capabilities backed by a local Ollama
chat model through LangChain.
"""

import logging
from typing import Optional

from langchain_ollama import ChatOllama

logger = logging.getLogger(__name__)


STRUCTURING_PROMPT = """You are an expert web scraper and data extractor. Analyze the following HTML content and extract the main article details.
Return ONLY a single, valid JSON object containing the following fields:
- "title": The main title of the article. If no title is found, use an empty string "".
- "content": The primary text content of the article. Remove all HTML tags, navigation menus, advertisements, sidebars, footers, and other boilerplate. Keep only the paragraphs that form the body of the article. If no content is found, use an empty string "".
- "date": The publication date of the article in "YYYY-MM-DD" format. If the date cannot be determined, use an empty string "".

Strictly adhere to the JSON format. Do not include any introductory text, explanations, or markdown formatting before or after the JSON object.

Source URL: {url}

HTML Content to analyze:
```html
{html}
```"""


class GenerationError(Exception):
    """Raised when the chat model fails to produce text."""
    pass


class OllamaChatService:
    """
    LLM capabilities used by the extractor and the answer assembler.

    ``generate`` returns free-form text; ``structure`` runs the model in JSON
    mode and returns the raw response text for the caller to parse.
    """

    def __init__(
        self,
        model: str = "llama3.1:latest",
        base_url: str = "http://localhost:11434",
        temperature: float = 0.2,
        llm: Optional[ChatOllama] = None,
        json_llm: Optional[ChatOllama] = None
    ):
        """
        Initialize the chat service.

        Args:
            model: Ollama chat model name
            base_url: Base URL for Ollama service
            temperature: Sampling temperature for answers
            llm: Pre-built chat model for generation (for tests)
            json_llm: Pre-built JSON-mode chat model for structuring (for tests)
        """
        self.model = model
        self.base_url = base_url
        self.temperature = temperature

        self.llm = llm or ChatOllama(
            model=model,
            temperature=temperature,
            base_url=base_url
        )
        # Extraction is deterministic and constrained to a JSON object
        self.json_llm = json_llm or ChatOllama(
            model=model,
            temperature=0.0,
            base_url=base_url,
            format="json"
        )

        logger.info(f"Initialized OllamaChatService with model: {self.model}")

    @staticmethod
    def _content_of(response) -> str:
        if hasattr(response, 'content'):
            return response.content
        return str(response)

    async def generate(self, prompt: str) -> str:
        """
        Generate an answer for a prompt.

        Raises:
            GenerationError: If the model call fails
        """
        logger.debug(f"Generating text (prompt length: {len(prompt)})")
        try:
            response = await self.llm.ainvoke(prompt)
        except Exception as e:
            raise GenerationError(f"Error generating answer with LLM: {e}") from e

        text = self._content_of(response)
        logger.debug(f"Text generation successful (response length: {len(text)})")
        return text

    async def structure(self, html: str, url: str) -> str:
        """
        Ask the model to turn HTML into a {title, content, date} JSON object.

        Args:
            html: Page content, already truncated by the caller
            url: Source URL, included for context

        Returns:
            Raw response text

        Raises:
            GenerationError: If the model call fails
        """
        prompt = STRUCTURING_PROMPT.format(url=url, html=html)
        try:
            response = await self.json_llm.ainvoke(prompt)
        except Exception as e:
            raise GenerationError(f"LLM call failed during HTML structuring: {e}") from e
        return self._content_of(response)
