"""Access token inspection.

The client never holds the signing secret, so claims are read without
verification; the backend remains the authority on validity.
"""

from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.schemas import TokenPayload


def read_claims(token: str) -> TokenPayload:
    """
    Read the claims of a JWT without verifying its signature.

    Args:
        token: JWT token string

    Returns:
        TokenPayload with the decoded claims

    Raises:
        JWTError: If the token is not a well-formed JWT
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as e:
        raise JWTError(f"Invalid token: {str(e)}") from e

    exp = claims.get("exp")
    return TokenPayload(
        sub=str(claims["sub"]) if claims.get("sub") is not None else None,
        id=str(claims["id"]) if claims.get("id") is not None else None,
        role=claims.get("role"),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp is not None else None,
    )


def is_token_expired(token: str, now: datetime | None = None) -> bool:
    """
    Check whether a token's `exp` claim has passed.

    Tokens without an `exp` claim never expire client-side. Malformed
    tokens count as expired.
    """
    try:
        payload = read_claims(token)
    except JWTError:
        return True

    if payload.exp is None:
        return False
    now = now or datetime.now(timezone.utc)
    return payload.exp <= now
