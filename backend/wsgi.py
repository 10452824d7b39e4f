# backend/wsgi.py
from lotto import create_app

app = create_app()
