"""
SmartSentry Backend — FastAPI entry point
Modules: config.py, models.py, db.py, auth.py, routes.py
"""

import logging

logging.basicConfig(level=logging.INFO)

from smartsentry.config import PORT  # noqa: E402
from smartsentry.routes import app  # noqa: E402,F401


def run():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    run()
