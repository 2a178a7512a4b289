"""Application package for the language-learning content and progress backend.

This package exposes the content library, service, repository and model
modules used by the FastAPI application. Individual modules contain the
concrete implementations and documentation.
"""
