"""Chunk index, similarity ranking and record persistence."""
