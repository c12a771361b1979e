"""
Adapters layer - External integrations (Microsoft Graph, Zoom, SQL database).
"""

from .database import SqlBookingStore, create_db_engine
from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphCalendarClient
from .mock_clients import InMemoryBookingStore, MockCalendarClient, MockConferenceClient
from .zoom_client import AccessTokenCache, ZoomClient

__all__ = [
    "AccessTokenCache",
    "GraphAuthenticator",
    "GraphCalendarClient",
    "InMemoryBookingStore",
    "MockCalendarClient",
    "MockConferenceClient",
    "SqlBookingStore",
    "ZoomClient",
    "create_db_engine",
]
