"""
Project Portfolio Manager
SQLAlchemy models.

Every model module imports ``db`` from here; ``create_app`` imports the
modules so the metadata is complete before ``db.create_all()``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
