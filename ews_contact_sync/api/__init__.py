"""
ews_contact_sync.api - Exchange Web Services module
"""

from ews_contact_sync.api.ews_api import ExchangeAPI, ExchangeAPIError

__all__ = ["ExchangeAPI", "ExchangeAPIError"]
