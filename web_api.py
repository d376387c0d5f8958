from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from dotenv import load_dotenv

from inventory_auth.app import create_app
from inventory_auth.core.config import AppConfig
from inventory_auth.core.logging import setup_logging

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent
STATE_DB_PATH = (APP_ROOT / APP_CONFIG.storage.sqlite_path).resolve()
_AUDIT_EXECUTOR = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit-log")

app = create_app(APP_CONFIG, database_path=STATE_DB_PATH, audit_executor=_AUDIT_EXECUTOR)
