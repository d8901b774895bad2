"""Rescan gate: blocks downloads of unscanned artifacts and triggers a targeted Xray reindex."""

__version__ = "1.0.0"
