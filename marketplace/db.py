from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .config import DATABASE_URL, DATABASE_ECHO


def get_engine(database_url: str):
    return create_async_engine(database_url, echo=DATABASE_ECHO, future=True)


def get_sessionmaker(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
    )


engine = get_engine(DATABASE_URL)
SessionLocal = get_sessionmaker(engine)

Base = declarative_base()


async def get_db():
    async with SessionLocal() as session:
        yield session
