"""Rescan gate models package.

Defines the shared data contracts used by the webhook and the policy:

  - download.py — BeforeDownloadRequest / BeforeDownloadResponse wire models
  - decision.py — Classification, ScanResolution, RemediationResult, Disposition
"""
