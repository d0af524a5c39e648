from math import ceil

from sqlalchemy import func
from sqlmodel import SQLModel, Session, create_engine, select

from config import get_settings

settings = get_settings()

connect_args = {}
if settings.database_url.startswith("sqlite"):
    # Sessions are used from FastAPI's threadpool
    connect_args["check_same_thread"] = False

engine = create_engine(settings.database_url, echo=settings.sql_echo, connect_args=connect_args)


def create_db_and_tables():
    """Create all tables registered on the SQLModel metadata"""
    # Import for side effect: registers the table models
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database session for a single request"""
    with Session(engine) as session:
        yield session


def paginate(session: Session, statement, page: int, limit: int):
    """Run ``statement`` for one page and return ``(items, pagination)``"""
    total = session.exec(select(func.count()).select_from(statement.subquery())).one()
    items = session.exec(statement.offset((page - 1) * limit).limit(limit)).all()
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": ceil(total / limit) if limit else 0,
    }
    return list(items), pagination
