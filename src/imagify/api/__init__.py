"""Imagify relay - FastAPI REST API layer.

Modules
-------
main
    FastAPI application factory, route handlers, CORS handling and the
    ``main()`` CLI entry point.
models
    Pydantic models for the request body and the JSON error envelope.
"""
