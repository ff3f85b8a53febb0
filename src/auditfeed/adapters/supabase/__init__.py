"""Public interface for the Supabase adapter."""

from __future__ import annotations

from .client import SupabaseAPIError, SupabaseChangeLogSource, SupabaseReferenceSource

__all__ = ["SupabaseAPIError", "SupabaseChangeLogSource", "SupabaseReferenceSource"]
