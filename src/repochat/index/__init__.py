"""Chunk storage, scoring, search and indexing."""
