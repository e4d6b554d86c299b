"""
Command-Line Interface for the News Article Agent

Provides CLI commands for:
- Article ingestion (single URL or file of URLs)
- Streaming ingestion from stdin (one message per line)
- Question answering (URL summary or knowledge-base lookup)
- System statistics
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .main_pipeline import NewsAgentSystem
from .query.router import QueryValidationError, validate_query_payload


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


async def _stdin_lines():
    """Yield stdin lines without blocking the event loop."""
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        yield line


async def cmd_ingest(args):
    """Handle the ingest command."""
    async with NewsAgentSystem(setup_logging=False) as system:
        if args.url:
            print(f"Ingesting article from: {args.url}")
            result = await system.ingest_url(args.url)

            if result.success:
                print(f"✓ Article {result.status.replace('_', ' ')}")
                print(f"  Processing time: {result.processing_time:.2f}s")
            else:
                print(f"✗ Failed to ingest article: {result.status}")
                sys.exit(1)

        elif args.file:
            if not Path(args.file).exists():
                print(f"✗ Error: File not found: {args.file}")
                sys.exit(1)

            print(f"Ingesting articles from: {args.file}")
            results = await system.ingest_from_file(args.file, show_progress=True)

            print(f"\n{'='*60}")
            print("Ingestion Summary:")
            print(f"  Total URLs: {results['total']}")
            print(f"  Stored: {results['stored']}")
            print(f"  Skipped: {results['skipped']}")
            print(f"  Failed: {results['failed']}")
            print(f"  Processing time: {results['processing_time']:.2f}s")
            print(f"{'='*60}")

            if results['failed'] > 0:
                print("\nFailed URLs:")
                for detail in results['details']:
                    if not detail['success']:
                        print(f"  - {detail['url']}: {detail.get('error', detail['status'])}")

        else:
            print("✗ Error: Either --url or --file must be specified")
            sys.exit(1)


async def cmd_consume(args):
    """Handle the consume command."""
    async with NewsAgentSystem(setup_logging=False) as system:
        stats = await system.consume(_stdin_lines())

    print(f"Messages received: {stats['received']}")
    print(f"  Processed: {stats['processed']}")
    print(f"  Empty: {stats['empty']}")
    print(f"  Errors: {stats['errors']}")


async def cmd_ask(args):
    """Handle the ask command."""
    try:
        query = validate_query_payload({'query': args.query})
    except QueryValidationError as e:
        print(f"✗ {e}")
        sys.exit(2)

    async with NewsAgentSystem(setup_logging=False) as system:
        response = await system.ask(query)

    if args.json:
        print(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
        return

    print("Answer:")
    print(response.answer)
    print()

    if response.sources:
        print("Sources:")
        for i, source in enumerate(response.sources, 1):
            print(f"  [{i}] {source['title']} ({source['date'] or 'date unknown'})")
            print(f"      {source['url']}")


async def cmd_stats(args):
    """Handle the stats command."""
    async with NewsAgentSystem(setup_logging=False) as system:
        stats = await system.get_stats()

    vs_stats = stats['vector_store_stats']
    print("="*60)
    print("System Statistics")
    print("="*60)
    print(f"Index: {vs_stats.get('index_name', 'N/A')}")
    print(f"  Dimension: {vs_stats.get('dimension', 'N/A')}")
    print(f"  Metric: {vs_stats.get('metric', 'N/A')}")
    print(f"  Total Vectors: {vs_stats.get('total_vectors', 0)}")
    print("="*60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='News Article Agent - article ingestion and grounded question answering',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest a single article
  news-agent ingest --url https://example.com/article

  # Ingest articles from a file
  news-agent ingest --file urls.txt

  # Ingest URLs or JSON envelopes streamed on stdin
  cat messages.jsonl | news-agent consume

  # Ask about ingested articles
  news-agent ask "What happened in the wildfires?"

  # Summarize an article directly
  news-agent ask https://example.com/article
        """
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    ingest_parser = subparsers.add_parser(
        'ingest',
        help='Ingest articles from URLs'
    )
    ingest_parser.add_argument(
        '--url',
        help='Single URL to ingest'
    )
    ingest_parser.add_argument(
        '--file',
        help='File containing URLs (one per line)'
    )
    ingest_parser.set_defaults(func=cmd_ingest)

    consume_parser = subparsers.add_parser(
        'consume',
        help='Ingest URLs from messages read on stdin'
    )
    consume_parser.set_defaults(func=cmd_consume)

    ask_parser = subparsers.add_parser(
        'ask',
        help='Ask a question or summarize a URL'
    )
    ask_parser.add_argument(
        'query',
        help='Question or article URL'
    )
    ask_parser.add_argument(
        '--json',
        action='store_true',
        help='Print the raw {answer, sources} response'
    )
    ask_parser.set_defaults(func=cmd_ask)

    stats_parser = subparsers.add_parser(
        'stats',
        help='Display vector index statistics'
    )
    stats_parser.set_defaults(func=cmd_stats)

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"\n✗ Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
