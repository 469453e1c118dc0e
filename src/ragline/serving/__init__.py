"""
Serving: FastAPI application for ingestion and querying.

Run with ``uvicorn ragline.serving.app:app``.
"""
