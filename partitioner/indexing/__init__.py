# partitioner/indexing/__init__.py

"""
Indexing Package
----------------
Mirrors base table indexes onto partition tables.
"""

from .index_manager import IndexManager

__all__ = ["IndexManager"]
