"""
HTTP errors raised by the broker. Same detail shape as OAuth error responses.
"""
from fastapi import HTTPException, status


def bad_request(description: str) -> HTTPException:
    """400 for a missing or invalid parameter, forged state or unknown scope."""
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "invalid_request", "error_description": description},
    )


def unauthorized(description: str = "Unauthorized") -> HTTPException:
    """401 for a bad bearer, audience mismatch or foreign character."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "unauthorized", "error_description": description},
        headers={"WWW-Authenticate": "Bearer"},
    )
