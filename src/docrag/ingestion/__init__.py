"""Document text extraction and chunking."""
