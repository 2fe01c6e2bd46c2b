# sophub/db/base.py
from sqlalchemy.orm import declarative_base

# Shared declarative base for every model module
Base = declarative_base()
