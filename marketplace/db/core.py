from sqlmodel import Session, create_engine

from marketplace.core.config import settings


connect_args = {}
if settings.database_url.startswith("sqlite"):
    # Sessions are handed across FastAPI's threadpool
    connect_args = {"check_same_thread": False}

engine = create_engine(settings.database_url, connect_args=connect_args)


def get_session():
    with Session(engine) as session:
        yield session
