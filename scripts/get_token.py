#!/usr/bin/env python3
"""
Shopify OAuth Helper - Get an offline Admin API access token

Runs the install flow for SHOPIFY_DOMAIN using SHOPIFY_API_KEY and
SHOPIFY_API_SECRET from .env, then stores the token as an offline session
in SESSION_DIR, where the sync picks it up.
"""

import asyncio
import secrets
import sys
import os
import threading
import urllib.parse
import webbrowser
from http.server import HTTPServer, BaseHTTPRequestHandler

import httpx

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sneaker_sync.config import settings
from sneaker_sync.shopify import FileSessionStorage, StorefrontSession

CALLBACK_PORT = 3456
REDIRECT_URI = f"http://localhost:{CALLBACK_PORT}/callback"

authorization_code = None
expected_state = secrets.token_urlsafe(16)


class OAuthHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        global authorization_code

        if not self.path.startswith('/callback'):
            self.send_response(404)
            self.end_headers()
            return

        params = urllib.parse.parse_qs(urllib.parse.urlparse(self.path).query)

        if 'code' in params and params.get('state', [None])[0] == expected_state:
            authorization_code = params['code'][0]
            self.send_response(200)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            self.wfile.write(
                b'<h1>Authorization Successful!</h1>'
                b'<p>You can close this window and return to the terminal.</p>'
            )
        else:
            self.send_response(400)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            error = params.get('error', ['Missing code or state mismatch'])[0]
            self.wfile.write(f'<h1>Error: {error}</h1>'.encode())

    def log_message(self, format, *args):
        pass  # Suppress logging


async def exchange_code_for_token(code: str) -> dict:
    """Exchange authorization code for an offline access token"""
    url = f"https://{settings.shopify_domain}/admin/oauth/access_token"

    async with httpx.AsyncClient() as client:
        response = await client.post(
            url,
            data={
                "client_id": settings.shopify_api_key,
                "client_secret": settings.shopify_api_secret,
                "code": code,
            },
            headers={"Accept": "application/json"}
        )
        return response.json()


async def store_session(result: dict) -> StorefrontSession:
    session = StorefrontSession.offline(
        shop=settings.shopify_domain,
        access_token=result["access_token"],
        scope=result.get("scope"),
    )
    await FileSessionStorage(settings.session_dir).store_session(session)
    return session


def main():
    print("\n" + "="*60)
    print("  Shopify OAuth - Get Admin API Access Token")
    print("="*60)

    missing = [
        name for name, value in (
            ("SHOPIFY_DOMAIN", settings.shopify_domain),
            ("SHOPIFY_API_KEY", settings.shopify_api_key),
            ("SHOPIFY_API_SECRET", settings.shopify_api_secret),
        ) if not value
    ]
    if missing:
        print(f"\nERROR: set {', '.join(missing)} in .env first.")
        sys.exit(1)

    oauth_url = f"https://{settings.shopify_domain}/admin/oauth/authorize?" + urllib.parse.urlencode({
        "client_id": settings.shopify_api_key,
        "scope": settings.shopify_scopes,
        "redirect_uri": REDIRECT_URI,
        "state": expected_state,
    })

    print(f"\nShop: {settings.shopify_domain}")
    print(f"Scopes: {settings.shopify_scopes}")
    print("\nStarting local server for OAuth callback...")

    server = HTTPServer(('localhost', CALLBACK_PORT), OAuthHandler)
    server_thread = threading.Thread(target=server.handle_request)
    server_thread.start()

    print(f"\nIf the browser doesn't open, go to this URL manually:\n\n{oauth_url}\n")
    webbrowser.open(oauth_url)

    print("Waiting for authorization...")
    server_thread.join(timeout=120)
    server.server_close()

    if not authorization_code:
        print("\nTimeout: No authorization code received.")
        print("Make sure to click 'Install app' in the browser.")
        sys.exit(1)

    print("\nExchanging code for access token...")
    result = asyncio.run(exchange_code_for_token(authorization_code))

    if "access_token" not in result:
        print(f"\nERROR: {result}")
        sys.exit(1)

    session = asyncio.run(store_session(result))
    print(f"\nStored offline session '{session.id}' in {settings.session_dir}")
    print(f"Scopes granted: {result.get('scope', 'N/A')}\n")


if __name__ == "__main__":
    main()
