"""Client-side helpers for the admin settings API."""
