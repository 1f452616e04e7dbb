"""
Google Sheets export for the promotion outstanding-fee report and the
activity mirror. Talks to the Sheets REST API through a google-auth
AuthorizedSession (a requests.Session that signs every call).
"""
import logging

import requests
from django.conf import settings
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']
API_BASE = 'https://sheets.googleapis.com/v4/spreadsheets'


def sheets_enabled():
    return bool(
        settings.GOOGLE_SHEETS_ENABLED
        and settings.GOOGLE_SHEETS_SPREADSHEET_ID
        and settings.GOOGLE_SHEETS_CREDENTIALS_FILE
    )


class GoogleSheetsService:
    """
    Minimal Sheets client.

    Raises ValueError when the integration is not configured, and
    requests.HTTPError when Google rejects a call.
    """

    def __init__(self, spreadsheet_id=None, credentials_file=None, session=None):
        self.spreadsheet_id = spreadsheet_id or settings.GOOGLE_SHEETS_SPREADSHEET_ID
        credentials_file = credentials_file or settings.GOOGLE_SHEETS_CREDENTIALS_FILE
        if not self.spreadsheet_id:
            raise ValueError("GOOGLE_SHEETS_SPREADSHEET_ID is not configured")
        if session is None:
            if not credentials_file:
                raise ValueError("GOOGLE_SHEETS_CREDENTIALS_FILE is not configured")
            credentials = service_account.Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
            session = AuthorizedSession(credentials)
        self.session = session

    def _url(self, a1_range, action=''):
        return f"{API_BASE}/{self.spreadsheet_id}/values/{requests.utils.quote(a1_range)}{action}"

    def clear(self, a1_range):
        response = self.session.post(self._url(a1_range, ':clear'), json={}, timeout=30)
        response.raise_for_status()

    def append_rows(self, a1_range, rows):
        """Append rows (lists of cell values) after the last row of the range"""
        if not rows:
            return 0
        response = self.session.post(
            self._url(a1_range, ':append'),
            params={'valueInputOption': 'USER_ENTERED', 'insertDataOption': 'INSERT_ROWS'},
            json={'values': rows},
            timeout=30,
        )
        response.raise_for_status()
        return response.json().get('updates', {}).get('updatedRows', len(rows))

    def replace_table(self, a1_range, records):
        """Clear the sheet and write ``records`` (list of dicts) with a header row"""
        self.clear(a1_range)
        if not records:
            return 0
        header = list(records[0].keys())
        rows = [header] + [[_cell(record.get(column)) for column in header] for record in records]
        self.append_rows(a1_range, rows)
        return len(records)


def _cell(value):
    if value is None:
        return ''
    if isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


def export_outstanding_fees(records):
    """Write the promotion report; returns True on success, False when disabled or failed"""
    if not sheets_enabled():
        return False
    try:
        GoogleSheetsService().replace_table(settings.GOOGLE_SHEETS_OUTSTANDING_RANGE, records)
    except (ValueError, OSError, GoogleAuthError, requests.RequestException) as e:
        logger.warning(f"Google Sheets export failed: {e}")
        return False
    logger.info(f"Exported {len(records)} students to Google Sheets")
    return True


def mirror_activity(row):
    """Append one activity row; failures are logged and ignored"""
    if not sheets_enabled():
        return False
    try:
        GoogleSheetsService().append_rows(settings.GOOGLE_SHEETS_ACTIVITY_RANGE, [[_cell(v) for v in row]])
    except (ValueError, OSError, GoogleAuthError, requests.RequestException) as e:
        logger.warning(f"Activity mirror to Google Sheets failed: {e}")
        return False
    return True
