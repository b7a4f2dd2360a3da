"""
REST endpoint clients for Pacifica Python SDK
"""

from .api_client import ApiClient
from .sign_client import SignClient, ORDER_SIDES, MARGIN_MODES, BATCH_ACTIONS

__all__ = [
    'ApiClient',
    'SignClient',
    'ORDER_SIDES',
    'MARGIN_MODES',
    'BATCH_ACTIONS',
]
