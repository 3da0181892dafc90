"""
Control plane for the multi-tenant messaging gateway.

Authenticates inbound requests, authorizes operator actions by role and
governs the subscription lifecycle that gates gateway instance quotas.
"""

__version__ = "0.1.0"
