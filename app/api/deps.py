"""
FastAPI dependencies (DB session)
"""
from app.infrastructure.db.session import get_db as _get_db


# Реэкспорт get_db для роутеров
get_db = _get_db
