"""Command-line client that pushes one notification to a running relay.

Usage:
    notify-relay-client <token> "Your message" [--base-url http://localhost:8000]

Prints the token's rate limit headers after every attempt. Exits non-zero
when the request fails or the token is over its limit.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from typing import Mapping, Sequence

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"
NOTIFY_PATH = "/api/v1/notify"


def format_rate_limit(headers: Mapping[str, str]) -> list[str]:
    """Render the ``X-RateLimit-*`` headers of a response as printable lines."""
    reset = headers.get("X-RateLimit-Reset")
    if reset and reset.isdigit():
        reset_text = datetime.fromtimestamp(int(reset)).isoformat(sep=" ")
    else:
        reset_text = "unknown"

    return [
        "Rate limit info:",
        f"  Limit: {headers.get('X-RateLimit-Limit', 'unknown')}",
        f"  Remaining: {headers.get('X-RateLimit-Remaining', 'unknown')}",
        f"  Reset: {reset_text}",
    ]


def send_notification(
    token: str,
    message: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
    client: httpx.Client | None = None,
    timeout: float = 10.0,
) -> httpx.Response:
    """POST ``message`` under ``token``.

    Args:
        token: Bearer token the message is stored against.
        message: Notification text.
        base_url: Relay root URL; ignored when ``client`` is given.
        client: Pre-configured client (its base URL is used).
        timeout: Request timeout in seconds for a client built here.

    Raises:
        httpx.HTTPError: On transport failures. HTTP error statuses are
            returned, not raised.
    """
    owns_client = client is None
    http = client if client is not None else httpx.Client(base_url=base_url, timeout=timeout)
    try:
        return http.post(
            NOTIFY_PATH,
            json={"message": message},
            headers={"Authorization": f"Bearer {token}"},
        )
    finally:
        if owns_client:
            http.close()


def main(argv: Sequence[str] | None = None, *, client: httpx.Client | None = None) -> int:
    parser = argparse.ArgumentParser(description="Send a notification to a notify-relay server")
    parser.add_argument("token", help="Bearer token to store the message under")
    parser.add_argument("message", help="Notification text")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="Relay root URL")
    args = parser.parse_args(argv)

    print(f"Message: {args.message}")

    try:
        response = send_notification(
            args.token, args.message, base_url=args.base_url, client=client
        )
    except httpx.HTTPError as exc:
        print(f"Error sending notification: {exc}", file=sys.stderr)
        return 1

    for line in format_rate_limit(response.headers):
        print(line)

    if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
        print("Rate limit exceeded!", file=sys.stderr)
        print(response.json().get("message", ""), file=sys.stderr)
        return 1

    if response.is_error:
        print(
            f"Failed to send notification: {response.status_code} - {response.text}",
            file=sys.stderr,
        )
        return 1

    print("Notification sent successfully!")
    print("Response:", json.dumps(response.json(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
