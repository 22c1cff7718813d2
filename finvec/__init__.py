"""finvec - pluggable vector storage for transaction embeddings."""

__version__ = "0.1.0"
