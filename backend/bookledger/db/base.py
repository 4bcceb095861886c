from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Registers every table on Base.metadata before create_all runs.
import bookledger.models  # noqa: E402,F401
