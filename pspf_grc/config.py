"""Runtime configuration read from the environment"""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    APP_NAME = "PSPF GRC Tracker"
    DB_PATH = os.getenv('PSPF_DB_PATH', 'pspf.db')
    STORAGE_BACKEND = os.getenv('PSPF_STORAGE', 'sqlite')  # sqlite, memory
    LOG_LEVEL = os.getenv('PSPF_LOG_LEVEL', 'INFO')
    SEED_DEMO_TAGS = os.getenv('PSPF_SEED_DEMO_TAGS', 'false').lower() == 'true'
    HOST = os.getenv('HOST', '127.0.0.1')
    PORT = int(os.getenv('PORT', '5000'))
    DEBUG = os.getenv('FLASK_ENV') == 'development'
    # Bulk export format
    SNAPSHOT_VERSION = "2.0"
    SUPPORTED_SNAPSHOT_VERSIONS = ("1.0", "2.0")
    # One persistence key per store family
    STORAGE_KEYS = {
        "catalogue": "pspf_catalogue",
        "compliance": "pspf_compliance",
        "tags": "pspf_tags",
        "links": "pspf_links",
        "projects": "pspf_projects",
    }


config = Config()
