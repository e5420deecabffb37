"""
Service module initialization
"""

from .service import ProxyInitService, Collaborators, ProxyInitResult, create_service, init_proxy

__all__ = [
    "ProxyInitService",
    "Collaborators",
    "ProxyInitResult",
    "create_service",
    "init_proxy",
]
