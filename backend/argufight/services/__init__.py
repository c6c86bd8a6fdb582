"""Service layer for ArguFight admin settings."""
