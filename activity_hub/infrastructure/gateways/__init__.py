"""Adapters for the domain services feeding the activity engine."""

from .fanout import count_all, fetch_all
from .http_gateway import (
    DomainGateway,
    GatewayError,
    HttpDomainGateway,
    build_default_gateways,
    build_http_client,
    clamp_limit,
    count_by_status,
    extract_records,
    sum_unread_field,
)

__all__ = [
    "DomainGateway",
    "GatewayError",
    "HttpDomainGateway",
    "build_default_gateways",
    "build_http_client",
    "clamp_limit",
    "count_all",
    "count_by_status",
    "extract_records",
    "fetch_all",
    "sum_unread_field",
]
