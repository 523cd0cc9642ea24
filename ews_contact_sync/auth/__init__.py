"""
ews_contact_sync.auth - Service account authentication module
"""

from ews_contact_sync.auth.ews_auth import AuthenticationError, ExchangeAuth

__all__ = ["AuthenticationError", "ExchangeAuth"]
