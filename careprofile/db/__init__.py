from .session import engine, Base, async_session, make_engine, make_session_factory
from . import models  # noqa: F401

__all__ = ["engine", "Base", "async_session", "make_engine", "make_session_factory", "models"]
