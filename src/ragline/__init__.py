"""
Ragline: incremental document ingestion and retrieval-augmented querying.

Subpackages
-----------
- :mod:`ragline.sources`: where documents come from.
- :mod:`ragline.documents`: turning document bytes into text.
- :mod:`ragline.ingestion`: change detection, chunking, embedding, reconciliation.
- :mod:`ragline.retrieval`: vector-store backends.
- :mod:`ragline.query`: building and sending retrieval-augmented LLM requests.
- :mod:`ragline.serving`: HTTP API.
"""

__version__ = "0.1.0"
