# procurement_ai/logic/__init__.py
"""Core ingestion and heuristic analysis pipeline."""
