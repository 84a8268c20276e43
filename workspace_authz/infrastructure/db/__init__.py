"""Infra DB: pool singleton + instrumentación (errores en crosscutting.exceptions)."""

from .pool import close_pool, get_pool, init_pool

__all__ = [
    "init_pool",
    "get_pool",
    "close_pool",
]
