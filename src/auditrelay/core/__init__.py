"""
Core business logic components.

This package contains the relay's moving parts:
- Ordered in-memory queue
- Ingest gateway (authentication and enqueueing)
- Drip dispatcher (throttled single consumer)
- Slack delivery channel
- Metrics and health checks
"""
