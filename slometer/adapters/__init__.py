"""Adapters for integrating SLOMeter with storage backends."""

from .sqlalchemy_stream import SQLAlchemyDocumentStream

__all__ = ["SQLAlchemyDocumentStream"]
