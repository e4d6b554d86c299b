"""
Real-world check of article extraction.

Fetches live news pages and structures them with the local Ollama model.
Requires a running Ollama server with the configured chat model pulled.
"""

import asyncio
import sys

from news_agent.config import get_config
from news_agent.ingestion.article_extractor import ArticleExtractor
from news_agent.llm.ollama_chat import OllamaChatService


async def run(urls):
    config = get_config()
    chat = OllamaChatService(
        model=config.llm_model,
        base_url=config.ollama_base_url,
        temperature=config.llm_temperature
    )
    extractor = ArticleExtractor(
        structurer=chat,
        timeout=config.fetch_timeout,
        max_html_length=config.max_html_length
    )

    try:
        for url in urls:
            print(f"Extracting: {url}")
            article = await extractor.extract(url)

            if article:
                print("✓ Success!")
                print(f"  Title: {article.title[:80]}")
                print(f"  Date: {article.date or 'unknown'}")
                print(f"  Content length: {len(article.content)} characters")
            else:
                print("✗ Failed")
            print()
    finally:
        await extractor.close()

    stats = extractor.get_stats()
    print("=" * 80)
    print(f"Attempts: {stats['total_attempts']}, "
          f"extracted: {stats['total_extracted']}, failed: {stats['total_failed']}")


def main():
    urls = sys.argv[1:] or [
        "https://www.bbc.com/news",
        "https://techcrunch.com/",
    ]
    asyncio.run(run(urls))


if __name__ == "__main__":
    main()
