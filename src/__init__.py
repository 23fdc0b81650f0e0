"""GlowRec: rule-based personalization for a cosmetics catalog.

This package provides a backend service that records user interactions and
turns them into personalized and "similar product" recommendations using
transparent weighted scoring with fallback tiers.

Modules:
    api: FastAPI application and REST API endpoints
    personalization: activity ledger, preference aggregation and candidate engines
    config: environment driven settings
"""

__version__ = "0.1.0"
