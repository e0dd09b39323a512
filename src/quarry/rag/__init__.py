"""Retrieval-augmented answering: embeddings, retrieval, prompting, streaming."""
