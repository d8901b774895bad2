"""Webhook authentication package.

Modules:
  - keys.py       — gate key minting (rsg-<ULID>) and bcrypt verification
  - middleware.py — authenticate_request() FastAPI dependency
"""
