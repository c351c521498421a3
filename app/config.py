import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file for local development
load_dotenv()

ROOT_DIR = Path(__file__).resolve().parents[1]

DB_PATH = Path(os.getenv("DB_PATH", ROOT_DIR / "data.sqlite3"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
APP_TITLE = os.getenv("APP_TITLE", "Relocation Onboarding API")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
