from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from storefront.config import DATABASE_URL
from storefront.models import Base

engine = create_engine(DATABASE_URL, future=True)


def init_db():
    Base.metadata.create_all(engine)


def main_session():
    # objects stay readable after commit so views can serialize them
    return Session(engine, expire_on_commit=False)
