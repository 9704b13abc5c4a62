"""
Content backend for the portfolio site.

This package reconciles the site's content document and project list across
a remote Postgres database, S3-compatible object storage, a thin HTTP API,
the bundled JSON snapshot and a local key-value cache, and serves that thin
API with FastAPI.
"""
