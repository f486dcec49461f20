"""Coaching back office API service.

This package contains the FastAPI application and related components
for the coaching marketplace back office.

Main components:
- main.py: FastAPI application, lifespan and error handlers
- models.py: Pydantic models for requests and responses
- auth.py: Firebase ID token and admin dependencies
- routers/: Subscription, chat, rating, task and account endpoints
- scheduler.py: Daily subscription expiry sweep
- llm/: Bridge to the hosted model behind the AI assistant
"""

# Avoid importing the FastAPI app at package import time so importing
# `api.*` in tests and tools has no side effects.
__all__ = []
