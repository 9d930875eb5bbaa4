"""Relevance-ranked post search."""
