"""HTTP API for capsule.

Exposes the chat and vision proxies, the SSH command route and the
placeholder search route through a FastAPI application factory.
"""
