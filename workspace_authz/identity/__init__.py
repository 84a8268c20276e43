"""Identidad del caller (headers del gateway -> AccessContext)."""
