"""
WSGI Entry Point

Module-level ``application`` for WSGI servers::

    gunicorn app:application

The configuration is selected by ``FLASK_ENV`` (production by default).
Running the module directly starts the Flask development server.
"""

import os

from shopguard.app import create_app

application = create_app()

# Flask CLI looks for ``app``
app = application


if __name__ == "__main__":
    application.run(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
        debug=application.config.get("DEBUG", False),
    )
