"""OAuth clients for connecting company channels."""

from .facebook import FacebookOAuthClient, FacebookPage, verify_webhook_signature
from .google import GmailProfile, GoogleOAuthClient, GoogleTokens

__all__ = [
    "FacebookOAuthClient",
    "FacebookPage",
    "GmailProfile",
    "GoogleOAuthClient",
    "GoogleTokens",
    "verify_webhook_signature",
]
