"""
URL signing for enterprise (client id + shared secret) credentials.
"""

import base64
import binascii
import hashlib
import hmac


def sign_hmac(secret: str, payload: str) -> str:
    """
    HMAC-SHA1 of `payload` keyed with the URL-safe base64 decoded secret.
    
    Returns:
        URL-safe base64 signature
        
    Raises:
        ValueError: If the secret is not valid URL-safe base64
    """
    try:
        key = base64.b64decode(secret.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Client secret is not valid URL-safe base64: {e}")
    digest = hmac.new(key, payload.encode("ascii"), hashlib.sha1).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


def sign_url(path_and_query: str, secret: str) -> str:
    """
    Append a `signature` parameter computed over `path?query`.
    
    Args:
        path_and_query: Already-encoded path and query, e.g. "/maps/api/x/json?a=1&client=c"
        secret: Enterprise shared secret
        
    Returns:
        The same path and query with `&signature=...` appended
    """
    signature = sign_hmac(secret, path_and_query)
    return f"{path_and_query}&signature={signature}"
