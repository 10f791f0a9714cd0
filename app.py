"""
PSPF GRC Tracker - Flask JSON API
Run with: python app.py
"""

import logging

from pspf_grc.api import create_app
from pspf_grc.config import config

logging.basicConfig(level=config.LOG_LEVEL,
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = create_app()

if __name__ == '__main__':
    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
