#!/usr/bin/env python3
"""Connect the owner's Google account (Gmail and Calendar) to Modern.

Opens a browser for OAuth consent and writes the resulting token to
GOOGLE_TOKEN_PATH, where GoogleAuthManager picks it up. Re-run after the
requested scopes change; tokens granted for older scopes cannot send mail
or edit events.

Usage:
    python scripts/google_auth.py            # ask before replacing a token
    python scripts/google_auth.py --force    # replace without asking
    python scripts/google_auth.py --status   # report the current token only
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from google_auth_oauthlib.flow import InstalledAppFlow

from modern.config import settings
from modern.integrations.google_auth import GoogleAuthManager


def missing_scopes(token_path: Path) -> list[str]:
    """Scopes Modern needs that the token at *token_path* was not granted."""
    granted = set(json.loads(token_path.read_text(encoding="utf-8")).get("scopes", []))
    return [s for s in GoogleAuthManager.SCOPES if s not in granted]


def run_consent_flow(creds_path: Path, token_path: Path) -> list[str]:
    """Run the browser flow and save the token. Returns the granted scopes."""
    flow = InstalledAppFlow.from_client_secrets_file(
        str(creds_path), scopes=GoogleAuthManager.SCOPES
    )
    creds = flow.run_local_server(port=0)
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json(), encoding="utf-8")
    return list(creds.scopes or [])


def _report(token_path: Path) -> int:
    if not token_path.exists():
        print(f"Not connected: no token at {token_path}")
        return 1
    missing = missing_scopes(token_path)
    if missing:
        print(f"Connected, but re-consent is needed for: {', '.join(missing)}")
        return 1
    print(f"Connected with all required scopes ({token_path})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Connect Gmail and Calendar to Modern")
    parser.add_argument("--force", action="store_true", help="Replace an existing token")
    parser.add_argument("--status", action="store_true", help="Only report the token state")
    args = parser.parse_args(argv)

    creds_path = Path(settings.google_credentials_path)
    token_path = Path(settings.google_token_path)

    if args.status:
        return _report(token_path)

    if not creds_path.exists():
        print(f"OAuth client file not found at {creds_path} (GOOGLE_CREDENTIALS_PATH).")
        return 1

    if token_path.exists() and not args.force and not missing_scopes(token_path):
        answer = input(f"{token_path} already grants every scope. Replace it? [y/N] ")
        if answer.strip().lower() != "y":
            return 0

    granted = run_consent_flow(creds_path, token_path)
    print(f"Token saved to {token_path}")
    print("Granted scopes:\n  " + "\n  ".join(granted))
    return 0


if __name__ == "__main__":
    sys.exit(main())
