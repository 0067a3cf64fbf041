"""Ports implemented by store backends."""

from .store import IStoreClient

__all__ = ["IStoreClient"]
