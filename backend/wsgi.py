# backend/wsgi.py
# FLASK_APP=wsgi.py python -m flask <group> <command>
from tokopos import create_app

app = create_app()
