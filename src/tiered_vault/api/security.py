# API Security - Session-token authentication for the local vault API
#
# A random token is generated when the app starts and kept on app.state.
# Every vault endpoint requires it in the X-Session-Token header, so
# other local processes cannot drive the vault without first reading it.

import secrets

from fastapi import FastAPI, Header, HTTPException, Request, status


def initialize_session_token(app: FastAPI) -> str:
    """
    Generate a new session token for this app instance.

    Security: 256-bit random token; required in the X-Session-Token
    header for all protected API calls.

    Returns:
        The generated session token (for frontend initialization)
    """
    app.state.session_token = secrets.token_urlsafe(32)
    return app.state.session_token


def get_session_token(app: FastAPI) -> str:
    """
    Raises:
        RuntimeError: If the session token hasn't been initialized
    """
    token = getattr(app.state, "session_token", None)
    if token is None:
        raise RuntimeError("Session token not initialized. Call initialize_session_token() first.")
    return token


async def verify_session_token(request: Request, x_session_token: str = Header(None)) -> str:
    """
    FastAPI dependency to verify the session token.

    Usage in routes:
        @router.get("/protected", dependencies=[Depends(verify_session_token)])

    Raises:
        HTTPException: 503 before startup, 401 if missing or invalid
    """
    expected = getattr(request.app.state, "session_token", None)
    if expected is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session token not initialized"
        )

    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header"
        )

    # Constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(x_session_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token"
        )

    return x_session_token
