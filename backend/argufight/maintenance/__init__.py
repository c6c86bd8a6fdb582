"""Operator repair and diagnostic tools (``argufight-admin`` command)."""
