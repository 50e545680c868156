"""Data models (pydantic schema and SQLAlchemy tables) for the notebook store."""
