"""
Branch Visit Reporting Platform
SQLAlchemy extension instance shared by every model module.

Usage:
    from branchvisit.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
