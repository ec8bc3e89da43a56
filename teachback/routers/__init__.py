"""FastAPI routers for the tutoring server.

Routers are grouped by concern (chat relay, notes, browser config) and
mounted under `/api` by the app factory.
"""
