"""Rescan policy: classifier, scan status resolver, remediation trigger, decision.

``evaluate_download()`` in gate.py is the entry point used by the webhook.
"""
