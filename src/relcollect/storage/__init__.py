"""Persistence for collected file and deployment records."""

from .base import Sink
from .loader import BatchLoader, load_all
from .sql import SqlSink

__all__ = ["Sink", "BatchLoader", "SqlSink", "load_all"]
