# backend/wsgi.py
# FLASK_APP target: `flask --app wsgi.py <group> <command>` from the backend directory.
from branchstock import create_app

app = create_app()
