"""
Answer Assembler

Builds grounding prompts from article sources, calls the text-generation
capability, and returns responses whose sources carry no article content.
"""

import logging
from typing import List

from ..capabilities import TextGenerationCapability
from ..models import Article, QueryResponse, Source

logger = logging.getLogger(__name__)

URL_ERROR_ANSWER = "Encountered an error while processing this URL."
GENERATION_FAILED_ANSWER = "Couldn't generate a response."


def build_summary_prompt(article: Article) -> str:
    """
    Build the prompt used to summarize a single article.

    Args:
        article: Extracted article

    Returns:
        Complete prompt string
    """
    return f"""You are analyzing a web article. Please provide a comprehensive summary of the main points.

Article Title: {article.title}
Article URL: {article.url}
Article Date: {article.date or 'Unknown'}

Article Content:
{article.content}

Provide a clear, factual summary of this article. Focus on the key information, main arguments, and important details."""


def format_sources(sources: List[Source]) -> str:
    """
    Format sources for inclusion in a grounding prompt.

    Args:
        sources: Retrieved sources with content

    Returns:
        Formatted context string
    """
    formatted_parts = []
    for i, source in enumerate(sources, 1):
        formatted_parts.append(
            f"Source {i}:\n"
            f"Title: {source.title}\n"
            f"URL: {source.url}\n"
            f"Date: {source.date or 'Unknown'}\n"
            f"Content: {source.content or 'Unknown'}\n"
            f"---"
        )
    return "\n\n".join(formatted_parts)


def build_grounding_prompt(question: str, sources: List[Source]) -> str:
    """
    Build the prompt that answers a question from retrieved sources only.

    Args:
        question: User's question
        sources: Retrieved sources with content

    Returns:
        Complete prompt string
    """
    return f"""You are answering a question based on provided sources and content.
Only use information from these sources and content to formulate your answer.

QUESTION: {question}

INFORMATION:
{format_sources(sources)}

Instructions:
1. Answer based ONLY on the information in the provided sources.
2. If the sources don't contain enough information to answer fully, acknowledge the limitations.
3. Do not make up or infer information not present in the sources.
4. Provide a clear answer."""


class AnswerAssembler:
    """Turns articles or retrieved sources into a QueryResponse."""

    def __init__(self, generator: TextGenerationCapability):
        """
        Initialize the assembler.

        Args:
            generator: Text-generation capability
        """
        self.generator = generator

    async def summarize_article(self, article: Article) -> QueryResponse:
        """Answer a URL query with a summary of the article."""
        prompt = build_summary_prompt(article)
        try:
            logger.debug("Generating text response for URL content")
            answer = await self.generator.generate(prompt)
        except Exception as e:
            logger.error(f"Error handling URL query: {article.url}: {e}")
            return QueryResponse(answer=URL_ERROR_ANSWER, sources=[])

        return QueryResponse.from_sources(answer, [article.to_source()])

    async def answer_from_sources(self, question: str, sources: List[Source]) -> QueryResponse:
        """
        Answer a question grounded in retrieved sources.

        Sources are returned without content whether or not generation succeeds.
        """
        prompt = build_grounding_prompt(question, sources)
        try:
            logger.debug("Generating text response from knowledge base sources")
            answer = await self.generator.generate(prompt)
        except Exception as e:
            logger.error(f"Failed to generate text response: {e}")
            answer = GENERATION_FAILED_ANSWER

        return QueryResponse.from_sources(answer, sources)
