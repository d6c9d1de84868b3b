# stockledger/db/__init__.py
from stockledger.db.base import Base, init_models
from stockledger.db.session import get_session, get_session_maker, make_async_engine

__all__ = ["Base", "init_models", "get_session", "get_session_maker", "make_async_engine"]
