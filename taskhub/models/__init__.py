"""
TaskHub models package.

``db`` is the single Flask-SQLAlchemy handle shared by every model,
service and test fixture.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
