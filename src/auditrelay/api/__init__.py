"""
API endpoints package.

Contains FastAPI routers for all service endpoints:
- /sfdc-audit-log - Salesforce audit-log callback
- /metrics - Prometheus metrics
- /healthz, /readyz - Health checks
"""
from .audit import router as audit_router
from .healthz import router as healthz_router
from .metrics import router as metrics_router

__all__ = ["audit_router", "healthz_router", "metrics_router"]
