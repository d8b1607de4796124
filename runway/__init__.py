"""
Backend package for the Runway AI API.

This package provides a FastAPI application with storage, session and
authentication layers for the pageant training client.
"""
