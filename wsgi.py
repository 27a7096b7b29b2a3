#wsgi.py
"""
wsgi.py – Blackbird POS Backend Entry Point
────────────────────────────────────────────
Used by Gunicorn (gunicorn wsgi:app) and by the Flask CLI
(flask --app wsgi bootstrap | run-reminders).
────────────────────────────────────────────
"""

import os
from blackbird import create_app

# Flask application factory
app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 10000))
    print(f"🚀 Starting Blackbird POS Backend on port {port}")
    app.run(host="0.0.0.0", port=port)
