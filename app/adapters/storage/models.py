"""SQLAlchemy models for the word and API key tables."""

from sqlalchemy import JSON, Boolean, Column, Integer, String, Text, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class WordEntry(Base):
    """A head word with JSON arrays of synonyms and antonyms."""

    __tablename__ = "data_json_tbl"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word = Column(String(255), nullable=False, index=True)
    synonyms = Column(JSON)
    antonyms = Column(JSON)


class ApiKey(Base):
    """API key granting unlimited access to the search endpoint."""

    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    api_key = Column(String(128), unique=True, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, server_default=text("1"))
