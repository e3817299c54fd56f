"""
Audit Relay - Salesforce audit log → Slack

A FastAPI service that accepts batches of Salesforce audit-log records,
buffers them in order and drips them into a Slack channel at a rate the
webhook accepts.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
