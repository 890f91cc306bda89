"""
Utility modules for the backend application.

This package contains the remote store gateway and the shared error taxonomy.
"""

from .errors import ErrorCategory, classify_error
from .supabase_store import StoreError, TableStore, get_store

__all__ = ['ErrorCategory', 'classify_error', 'StoreError', 'TableStore', 'get_store']
