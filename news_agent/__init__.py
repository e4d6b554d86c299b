"""
News Article Agent

Ingests news article URLs, extracts structured content and embeddings,
stores them in a vector index, and answers questions either by summarizing
a URL directly or by retrieval over previously ingested articles.
"""

__version__ = "0.1.0"
