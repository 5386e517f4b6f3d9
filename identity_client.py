"""
identity_client.py
==================
Google OAuth2 sign-in for PlayLog.

The web layer only needs a *principal*: the signed-in user's e-mail plus an
optional name and avatar.  This module runs the standard authorization code
flow against Google and turns the userinfo response into that principal.

OAuth flow summary
------------------
* ``build_auth_url(redirect_uri, state)`` → URL to redirect the browser to
* ``exchange_code(code, redirect_uri)``   → principal dict

Configuration keys (``config.json``)
-------------------------------------
::

    "google_client_id": "YOUR_GOOGLE_CLIENT_ID",
    "google_client_secret": "YOUR_GOOGLE_CLIENT_SECRET",
    "google_redirect_uri": "http://localhost:5000/api/auth/callback"
"""
from __future__ import annotations

import logging
import urllib.parse
from typing import Any, Dict

import requests

logger = logging.getLogger('playlog.identity')


class IdentityError(Exception):
    """Raised when the provider does not vouch for a user."""


class GoogleOAuthClient:
    """Google OAuth2 authorization code client.

    Args:
        client_id:     Google OAuth client ID.
        client_secret: Google OAuth client secret.
        timeout:       HTTP request timeout in seconds.
    """

    _AUTH_URL     = "https://accounts.google.com/o/oauth2/v2/auth"
    _TOKEN_URL    = "https://oauth2.googleapis.com/token"
    _USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

    def __init__(self, client_id: str, client_secret: str, timeout: int = 10) -> None:
        if not client_id or not client_secret:
            raise ValueError("client_id and client_secret must not be empty")
        self._client_id     = client_id
        self._client_secret = client_secret
        self._timeout       = timeout
        self._session       = requests.Session()

    def build_auth_url(self, redirect_uri: str, state: str = '') -> str:
        """Return the Google authorization URL.

        Args:
            redirect_uri: Registered redirect URI.
            state:        Optional CSRF state.

        Returns:
            Full authorization URL.
        """
        params: Dict[str, str] = {
            'client_id':     self._client_id,
            'redirect_uri':  redirect_uri,
            'response_type': 'code',
            'scope':         'openid email profile',
        }
        if state:
            params['state'] = state
        return f"{self._AUTH_URL}?{urllib.parse.urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        """Exchange an authorization code and fetch the user's profile.

        Returns:
            Principal dict with ``email``, ``name`` and ``image``.

        Raises:
            IdentityError: token exchange or userinfo request failed, or the
                account has no verified e-mail.
        """
        data = {
            'client_id':     self._client_id,
            'client_secret': self._client_secret,
            'grant_type':    'authorization_code',
            'code':          code,
            'redirect_uri':  redirect_uri,
        }
        try:
            resp = self._session.post(self._TOKEN_URL, data=data, timeout=self._timeout)
            resp.raise_for_status()
            access_token = resp.json().get('access_token')
            if not access_token:
                raise IdentityError("Google token response missing 'access_token'")

            resp = self._session.get(
                self._USERINFO_URL,
                headers={'Authorization': f'Bearer {access_token}'},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            profile = resp.json()
        except requests.RequestException as exc:
            logger.warning("Google sign-in failed: %s", exc)
            raise IdentityError(f"Google sign-in failed: {exc}") from exc

        email = profile.get('email')
        if not email or profile.get('email_verified') is False:
            raise IdentityError("Google account has no verified e-mail")
        logger.info("Signed in %s via Google", email)
        return {
            'email': email,
            'name':  profile.get('name'),
            'image': profile.get('picture'),
        }
