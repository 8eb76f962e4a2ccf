"""
HTTP Clients Module

Provides the HTTP client for NEIS Open API dataset endpoints.

Components:
    - NeisClient: Async client with bounded retries and backoff
    - NeisClientConfig: Configuration for the NEIS client
    - RetryPolicy: Retry bound and backoff delay function
    - RequestSignature: Canonical query, used as cache key
    - ServerError / RequestRejectedError / TransportError / EnvelopeError:
      UpstreamError subclasses per failure kind
"""

from .neis_client import (
    EnvelopeError,
    NeisClient,
    NeisClientConfig,
    RequestRejectedError,
    RetryPolicy,
    ServerError,
    TransportError,
)
from .signature import RequestSignature

__all__ = [
    "NeisClient",
    "NeisClientConfig",
    "RetryPolicy",
    "RequestSignature",
    "ServerError",
    "RequestRejectedError",
    "TransportError",
    "EnvelopeError",
]
