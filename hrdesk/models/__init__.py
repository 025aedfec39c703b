"""
HR Desk — SQLAlchemy models package.

The shared ``db`` handle lives here so that every model module and the
application factory import the same Flask-SQLAlchemy instance:

    from hrdesk.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
