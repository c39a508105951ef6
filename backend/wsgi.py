# backend/wsgi.py
from resto import create_app

app = create_app()
