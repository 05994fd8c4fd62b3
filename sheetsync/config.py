"""
Centralized configuration — env vars and sync constants.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Flask ─────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

# ── Redis (circuit breaker state) ─────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Google Sheets ─────────────────────────────────────────────────────────────
GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv('GOOGLE_SERVICE_ACCOUNT_FILE', 'service-account-key.json')
GOOGLE_SHEETS_SCOPES = ['https://www.googleapis.com/auth/spreadsheets.readonly']
DEFAULT_SHEET_RANGE = os.getenv('DEFAULT_SHEET_RANGE', 'A:Z')

# ── Downstream CRM ────────────────────────────────────────────────────────────
LEAD_CREATE_URL = os.getenv(
    'LEAD_CREATE_URL',
    'https://pujariwala.in/jwt_vir_apis/get_googlesheet_lead_create',
)
CRM_TIMEOUT = float(os.getenv('CRM_TIMEOUT', '30'))

# Header carrying the tenant id on inbound requests and on the CRM relay call
TENANT_HEADER = os.getenv('TENANT_HEADER', 'ENQ-BOOKS-KEY')

DEFAULT_LEAD_SOURCE = 'Google Sheet'

# ── Sync throttle: pause SYNC_THROTTLE_DELAY seconds every N rows ───────────
SYNC_THROTTLE_EVERY = int(os.getenv('SYNC_THROTTLE_EVERY', '10'))
SYNC_THROTTLE_DELAY = float(os.getenv('SYNC_THROTTLE_DELAY', '0.05'))
