"""Hostname SSL provisioning: authority client, status poller, record store and engine."""
from .client import AuthorityClient
from .engine import ReconciliationEngine
from .errors import AuthorityError, NotFound, PollExhausted, SSLServiceError, StoreError, ValidationError
from .models import PENDING_STATUS, CertificateRecord, HostnameRecord
from .persistence.sqlite import CertificateStore
from .poller import StatusPoller

__all__ = [
    "AuthorityClient",
    "ReconciliationEngine",
    "StatusPoller",
    "CertificateStore",
    "CertificateRecord",
    "HostnameRecord",
    "PENDING_STATUS",
    "SSLServiceError",
    "ValidationError",
    "NotFound",
    "AuthorityError",
    "PollExhausted",
    "StoreError",
]
