"""Agora API - Reddit-style community backend on Supabase."""

__version__ = "0.3.0"
