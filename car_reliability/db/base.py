"""
Declarative base shared by every car_reliability model.

Models register themselves by importing ``Base`` from here;
``car_reliability.db.models`` imports them all so ``Base.metadata`` is
complete for ``init_db`` and Alembic.
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
