# API Module - local HTTP interface to the vault

from .main import create_app, start_api_server
from .security import verify_session_token

__all__ = ["create_app", "start_api_server", "verify_session_token"]
