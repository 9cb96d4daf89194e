"""Remote data store access (Supabase tables)."""
