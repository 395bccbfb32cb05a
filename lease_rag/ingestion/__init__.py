"""Chunking and embedding of extracted page text."""
