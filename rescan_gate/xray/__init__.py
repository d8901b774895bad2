"""Xray collaborator: REST client and shared HTTP client factory."""
