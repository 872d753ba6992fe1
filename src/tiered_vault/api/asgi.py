# ASGI entry point: uvicorn tiered_vault.api.asgi:app
#
# Builds the app from VAULT_* environment settings at import time.

from .main import create_app

app = create_app()
