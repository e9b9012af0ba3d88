# backend/wsgi.py
from stitchline import create_app

app = create_app()
