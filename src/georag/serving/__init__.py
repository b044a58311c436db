"""
Serving — FastAPI application and KServe runtime.

This module exposes ingestion and question answering over HTTP so the
service can run as a standalone container or a KServe InferenceService.
"""
