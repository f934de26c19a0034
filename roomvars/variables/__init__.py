"""Variable schema, access policy, persistence and the per-room store.

Kept free of FastAPI concerns so it can be reused by API routes and tests.
"""
