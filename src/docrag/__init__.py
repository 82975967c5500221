"""DocRAG - local retrieval-augmented search over uploaded documents."""

__version__ = "0.1.0"
