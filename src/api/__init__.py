"""FastAPI application module for GlowRec.

This module contains the FastAPI application, route handlers, and API
endpoints for recommendations and activity tracking.
"""
