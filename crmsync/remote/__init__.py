"""Remote CRM access: client, credentials, result types."""

from .auth import Credentials, TokenProvider
from .client import RemoteClient
from .result import Err, ErrorKind, Ok, Result, SyncError

__all__ = [
    "Credentials",
    "TokenProvider",
    "RemoteClient",
    "Err",
    "ErrorKind",
    "Ok",
    "Result",
    "SyncError",
]
