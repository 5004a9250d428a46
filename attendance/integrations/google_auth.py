"""
Attendance Tracker — Google Sheets Authentication.

The production record store is a pair of Google spreadsheets (attendance
and directory). Every read and write goes through the service built here.

Two credential sources are supported:

- A service account key (GOOGLE_SERVICE_ACCOUNT_FILE). This is what the
  scheduled batch runs use; the account must be shared on both books.
- An installed-app user token (GOOGLE_TOKEN_PATH), refreshed when expired
  and obtained through the browser consent flow on first use. Handy when
  running the CLI by hand.

The service account wins when both are configured.
"""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from attendance.core.errors import ConfigurationMissing

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _service_account_credentials(key_path: Path):
    if not key_path.exists():
        raise ConfigurationMissing(f"Service account key not found at {key_path}")
    logger.info("Using service account key %s", key_path)
    return service_account.Credentials.from_service_account_file(str(key_path), scopes=SCOPES)


def _load_user_token(token_path: Path) -> Credentials | None:
    """Stored user token, refreshed if needed. None when absent or unusable."""
    if not token_path.exists():
        return None
    creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    logger.debug("Loaded existing token from %s", token_path)
    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            logger.info("Token refreshed successfully")
        except Exception as exc:
            logger.warning("Token refresh failed (%s), re-authenticating", exc)
            return None
    return creds if creds.valid else None


def _run_consent_flow(client_secrets_path: Path) -> Credentials:
    if not client_secrets_path.exists():
        raise ConfigurationMissing(
            f"Google credentials file not found at {client_secrets_path}. "
            "Download it from the Google Cloud Console, or set "
            "GOOGLE_SERVICE_ACCOUNT_FILE for unattended runs."
        )
    flow = InstalledAppFlow.from_client_secrets_file(str(client_secrets_path), SCOPES)
    creds = flow.run_local_server(port=0)
    logger.info("New credentials obtained via OAuth2 consent flow")
    return creds


def _save_user_token(creds: Credentials, token_path: Path) -> None:
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    logger.debug("Token saved to %s", token_path)


def load_credentials(config=None):
    """Credentials for the Sheets API from the configured source.

    Raises ConfigurationMissing when the configured key or client secrets
    file does not exist.
    """
    if config is None:
        from attendance.config import settings
        config = settings

    if config.GOOGLE_SERVICE_ACCOUNT_FILE:
        return _service_account_credentials(Path(config.GOOGLE_SERVICE_ACCOUNT_FILE))

    token_path = Path(config.GOOGLE_TOKEN_PATH)
    creds = _load_user_token(token_path)
    if creds is None:
        creds = _run_consent_flow(Path(config.GOOGLE_CREDENTIALS_PATH))
    _save_user_token(creds, token_path)
    return creds


def get_sheets_service(config=None):
    """Authenticate and return a Google Sheets API v4 service object."""
    service = build("sheets", "v4", credentials=load_credentials(config), cache_discovery=False)
    logger.info("Google Sheets service built successfully")
    return service


if __name__ == "__main__":
    from attendance.config import settings

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    svc = get_sheets_service()
    for label, spreadsheet_id in (
        ("Attendance", settings.ATTENDANCE_SPREADSHEET_ID),
        ("Directory", settings.DIRECTORY_SPREADSHEET_ID),
    ):
        if not spreadsheet_id:
            print(f"{label}: no spreadsheet id set")
            continue
        meta = svc.spreadsheets().get(spreadsheetId=spreadsheet_id).execute()
        titles = [s["properties"]["title"] for s in meta.get("sheets", [])]
        print(f"{label}: {meta['properties']['title']} ({', '.join(titles)})")
