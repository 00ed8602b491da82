"""JSONL persistence and serialization."""
