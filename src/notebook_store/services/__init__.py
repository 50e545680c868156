"""Service layer for the notebook store."""
