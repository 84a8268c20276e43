"""Infraestructura: persistencia (Postgres / in-memory) y pool DB."""
