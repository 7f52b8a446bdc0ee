"""
Comanda - Centralized Configuration
====================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    DB_USER = os.getenv("DB_USER")
    DB_PASSWORD = os.getenv("DB_PASSWORD")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME")

    if not all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
        print("[ERROR] Critical: Database config missing in .env (DATABASE_URL or DB_USER, DB_PASSWORD, DB_HOST, DB_NAME)")
        sys.exit(1)

    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ==========================================
# 🕒 Business Time
# ==========================================
# Guatemala has no DST, so this is a fixed UTC-6 offset.
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "America/Guatemala")

# Shift boundaries (local business time). AM runs 22:01 → 14:00, PM 14:01 → 22:00.
SHIFT_AM_END = (14, 0)
SHIFT_PM_END = (22, 0)

# Auto-publish fires once per minute-check at these local times
REPORT_AUTO_PUBLISH = os.getenv("REPORT_AUTO_PUBLISH", "true").lower() == "true"
REPORT_AUTO_PUBLISH_MINUTES = ((13, 59), (21, 59))
REPORT_SYSTEM_STAFF_NAME = "Sistema"


# ==========================================
# 🍽️ Orders
# ==========================================
KITCHEN_MAX_ON_SCREEN = int(os.getenv("KITCHEN_MAX_ON_SCREEN") or "3")
MERGE_RETRY_LIMIT = int(os.getenv("MERGE_RETRY_LIMIT") or "3")
NOTE_MAX_LENGTH = 200
DEFAULT_NIT = "CF"  # consumidor final
CURRENCY_SYMBOL = "Q"


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
STAFF_HEADER = "X-Staff-Id"
