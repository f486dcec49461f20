"""Coaching back office shared libraries.

This package contains reusable components:
- common: Settings, domain errors and timestamp helpers
- firebase: Firebase Admin initialisation and the authentication adapter
- firestore: Collection services (subscriptions, chat, ratings, tasks, accounts)
- models: Pydantic models for the stored documents
"""
