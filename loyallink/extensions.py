"""
Flask extension instances for LoyalLink.

Created unbound here and attached to the app in create_app().
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Database (businesses, customers, visits, rewards, notification logs)
db = SQLAlchemy()

# Alembic migrations via `flask db ...`
migrate = Migrate()
