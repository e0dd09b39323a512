"""Quarry: document question answering over a local knowledge base."""
