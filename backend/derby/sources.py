"""Where question rows come from.

Every source returns a list of ``(tier_label, encoded_question)`` pairs,
matching the two columns of the question sheet (header row excluded).
"""

import csv
import io
import json
import logging
from typing import List, Tuple

import gspread
import requests
from google.auth.exceptions import GoogleAuthError

from derby.errors import ConfigError, QuestionSourceError

logger = logging.getLogger(__name__)

Row = Tuple[str, str]
SHEET_CSV_URL = 'https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq'
SHEETS_SCOPES = ['https://www.googleapis.com/auth/spreadsheets.readonly']
REQUIRED_CREDENTIAL_KEYS = ('client_email', 'private_key')


def _rows_from_csv(text: str, skip_header: bool = True) -> List[Row]:
    rows = []
    for i, record in enumerate(csv.reader(io.StringIO(text))):
        if skip_header and i == 0:
            continue
        if len(record) < 2:
            continue
        rows.append((record[0].strip(), record[1].strip()))
    return rows


class StaticQuestionSource:
    def __init__(self, rows):
        self._rows = [tuple(r) for r in rows]

    def fetch_rows(self) -> List[Row]:
        return list(self._rows)


class CsvQuestionSource:
    def __init__(self, path: str, skip_header: bool = True):
        self.path = path
        self.skip_header = skip_header

    def fetch_rows(self) -> List[Row]:
        try:
            with open(self.path, newline='', encoding='utf-8') as fh:
                text = fh.read()
        except OSError as exc:
            raise QuestionSourceError(f'Could not read {self.path}: {exc}') from exc
        rows = _rows_from_csv(text, self.skip_header)
        logger.info(f"[source] read {len(rows)} rows from {self.path}")
        return rows


class SheetQuestionSource:
    """Reads a link-shared Google Sheet through its CSV export."""

    def __init__(self, sheet_id: str, sheet_name: str = 'Questions', timeout: float = 10, session=None):
        self.sheet_id = sheet_id
        self.sheet_name = sheet_name
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_rows(self) -> List[Row]:
        url = SHEET_CSV_URL.format(sheet_id=self.sheet_id)
        try:
            response = self._session.get(
                url,
                params={'tqx': 'out:csv', 'sheet': self.sheet_name},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise QuestionSourceError(f'Could not fetch sheet {self.sheet_id}: {exc}') from exc
        rows = _rows_from_csv(response.text)
        logger.info(f"[source] read {len(rows)} rows from sheet {self.sheet_id}/{self.sheet_name}")
        return rows


def load_service_account_info(path: str) -> dict:
    """Read a service-account key file, raising ``ConfigError`` if it is unusable."""
    try:
        with open(path, encoding='utf-8') as fh:
            info = json.load(fh)
    except OSError as exc:
        raise ConfigError(f'Could not read credentials file {path}: {exc}') from exc
    except ValueError as exc:
        raise ConfigError(f'Credentials file {path} is not valid JSON: {exc}') from exc
    if not isinstance(info, dict):
        raise ConfigError(f'Credentials file {path} must hold a JSON object')
    missing = [key for key in REQUIRED_CREDENTIAL_KEYS if not info.get(key)]
    if missing:
        raise ConfigError(f"Credentials file {path} is missing {', '.join(missing)}")
    return info


class ServiceAccountSheetSource:
    """Reads a private Google Sheet with service-account credentials.

    ``cells`` is an A1 range inside the named tab; the default skips the
    header row and keeps the first two columns.
    """

    def __init__(self, sheet_id: str, credentials_info: dict, sheet_name: str = 'Questions',
                 cells: str = 'A2:B', client_factory=None):
        self.sheet_id = sheet_id
        self.sheet_name = sheet_name
        self.cells = cells
        self._credentials_info = credentials_info
        self._client_factory = client_factory or gspread.service_account_from_dict

    @property
    def range(self) -> str:
        return f'{self.sheet_name}!{self.cells}'

    def fetch_rows(self) -> List[Row]:
        try:
            client = self._client_factory(self._credentials_info, scopes=SHEETS_SCOPES)
            response = client.open_by_key(self.sheet_id).values_get(self.range)
        except (gspread.exceptions.GSpreadException, GoogleAuthError,
                requests.RequestException, ValueError) as exc:
            raise QuestionSourceError(f'Could not read sheet {self.sheet_id} range {self.range}: {exc}') from exc

        rows = []
        for record in response.get('values', []):
            if len(record) < 2:
                continue
            rows.append((str(record[0]).strip(), str(record[1]).strip()))
        logger.info(f"[source] read {len(rows)} rows from sheet {self.sheet_id} range {self.range}")
        return rows


def build_question_source(config):
    """Pick the question source named by the app config."""
    if config.get('QUESTION_ROWS') is not None:
        return StaticQuestionSource(config['QUESTION_ROWS'])
    if config.get('QUESTIONS_SHEET_ID') and config.get('GOOGLE_CREDENTIALS_FILE'):
        return ServiceAccountSheetSource(
            config['QUESTIONS_SHEET_ID'],
            load_service_account_info(config['GOOGLE_CREDENTIALS_FILE']),
            config.get('QUESTIONS_SHEET_NAME') or 'Questions',
            cells=config.get('QUESTIONS_RANGE') or 'A2:B',
        )
    if config.get('QUESTIONS_SHEET_ID'):
        return SheetQuestionSource(
            config['QUESTIONS_SHEET_ID'],
            config.get('QUESTIONS_SHEET_NAME') or 'Questions',
            timeout=config.get('QUESTION_SOURCE_TIMEOUT_SEC', 10),
        )
    if config.get('QUESTIONS_CSV'):
        return CsvQuestionSource(config['QUESTIONS_CSV'])
    raise ConfigError('Set QUESTIONS_SHEET_ID or QUESTIONS_CSV')
