from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base


def create_db_engine(db_file: str | Path, *, echo: bool = False) -> Engine:
    path = Path(db_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    engine: Engine = create_engine(f"sqlite:///{path}", echo=echo, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    return engine


def init_db(echo: bool = False, *, db_file: str | Path, reset: bool = False) -> sessionmaker[Session]:
    path = Path(db_file)
    if reset and path.exists():
        path.unlink()

    return sessionmaker(create_db_engine(path, echo=echo))
