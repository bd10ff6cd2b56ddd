"""Application package for the Online Bank Simulation backend.

This package exposes the models, repositories, services and routers
used by the FastAPI application, plus a small async API client. The
individual modules contain the concrete implementations and
documentation.
"""
