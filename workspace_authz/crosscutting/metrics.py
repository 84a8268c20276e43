"""
===============================================================================
ARCHIVO: crosscutting/metrics.py
===============================================================================

CRC CARD (Módulo)
-------------------------------------------------------------------------------
Nombre:
    Métricas (Prometheus) — Observabilidad de bajo acoplamiento

Responsabilidades:
    - Definir métricas Prometheus en un registry propio (singleton).
    - Proveer funciones pequeñas y estables para registrar eventos.
    - Cuidar cardinalidad (NO user_id, NO tokens, NO ids de nodo).
    - Exponer helpers para generar la respuesta /metrics.

Colaboradores:
    - crosscutting.middleware: latencia y conteo HTTP.
    - application.access_resolver: decisiones de acceso y errores de árbol.
    - application.invitation_service / share_link_service: transiciones.
    - api.main: expone /metrics si metrics_enabled.
===============================================================================
"""

from __future__ import annotations

import re

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_registry = CollectorRegistry()

# -----------------------------------------------------------------------------
# Métricas (variables globales)
# -----------------------------------------------------------------------------

_requests_total: Counter | None = None
_request_latency: Histogram | None = None

_access_checks_total: Counter | None = None
_tree_integrity_errors_total: Counter | None = None
_invitation_transitions_total: Counter | None = None
_share_link_redemptions_total: Counter | None = None
_grant_writes_total: Counter | None = None
_db_query_duration: Histogram | None = None


def _init_metrics() -> None:
    """Inicializa métricas (una sola vez)."""
    global _requests_total, _request_latency
    global _access_checks_total, _tree_integrity_errors_total
    global _invitation_transitions_total, _share_link_redemptions_total
    global _grant_writes_total, _db_query_duration

    if _requests_total is not None:
        return

    # ------------------------
    # HTTP
    # ------------------------
    _requests_total = Counter(
        "authz_requests_total",
        "Total de requests HTTP",
        ["endpoint", "method", "status"],
        registry=_registry,
    )

    _request_latency = Histogram(
        "authz_request_latency_seconds",
        "Latencia de requests HTTP (segundos)",
        ["endpoint", "method"],
        buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
        registry=_registry,
    )

    # ------------------------
    # Resolución de acceso
    # ------------------------
    _access_checks_total = Counter(
        "authz_access_checks_total",
        "Decisiones de acceso por rol resultante",
        ["role", "outcome"],
        registry=_registry,
    )

    _tree_integrity_errors_total = Counter(
        "authz_tree_integrity_errors_total",
        "Ciclos o profundidad excesiva detectados al recorrer padres",
        registry=_registry,
    )

    # ------------------------
    # Emisión de grants
    # ------------------------
    _invitation_transitions_total = Counter(
        "authz_invitation_transitions_total",
        "Transiciones de estado de invitaciones",
        ["status"],
        registry=_registry,
    )

    _share_link_redemptions_total = Counter(
        "authz_share_link_redemptions_total",
        "Usos de share links por resultado",
        ["outcome"],
        registry=_registry,
    )

    _grant_writes_total = Counter(
        "authz_grant_writes_total",
        "Escrituras de grants por origen",
        ["source", "changed"],
        registry=_registry,
    )

    # ------------------------
    # Base de datos
    # ------------------------
    _db_query_duration = Histogram(
        "authz_db_query_duration_seconds",
        "Duración de queries por tipo de statement",
        ["kind"],
        buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
        registry=_registry,
    )


_init_metrics()


# -----------------------------------------------------------------------------
# API de registro
# -----------------------------------------------------------------------------


def record_request_metrics(
    endpoint: str, method: str, status_code: int, latency_seconds: float
) -> None:
    if _requests_total is None or _request_latency is None:
        return
    normalized = _normalize_endpoint(endpoint)
    _requests_total.labels(
        endpoint=normalized, method=method, status=_status_bucket(status_code)
    ).inc()
    _request_latency.labels(endpoint=normalized, method=method).observe(
        latency_seconds
    )


def record_access_check(role: str | None, *, granted: bool) -> None:
    if _access_checks_total is None:
        return
    _access_checks_total.labels(
        role=role or "none", outcome="granted" if granted else "denied"
    ).inc()


def record_tree_integrity_error(count: int = 1) -> None:
    if _tree_integrity_errors_total is not None:
        _tree_integrity_errors_total.inc(count)


def record_invitation_transition(status: str) -> None:
    if _invitation_transitions_total is not None:
        _invitation_transitions_total.labels(status=status).inc()


def record_share_link_redemption(outcome: str) -> None:
    if _share_link_redemptions_total is not None:
        _share_link_redemptions_total.labels(outcome=outcome).inc()


def record_grant_write(source: str, *, changed: bool) -> None:
    if _grant_writes_total is not None:
        _grant_writes_total.labels(
            source=source, changed="true" if changed else "false"
        ).inc()


def observe_db_query_duration(kind: str, seconds: float) -> None:
    if _db_query_duration is not None:
        _db_query_duration.labels(kind=kind).observe(seconds)


# -----------------------------------------------------------------------------
# Helpers internos
# -----------------------------------------------------------------------------


def _normalize_endpoint(path: str) -> str:
    """Normaliza paths para evitar cardinalidad alta (y no exponer tokens)."""
    path = re.sub(
        r"/invitations/(?!(?:by-id|sent|received)(?:/|$))[^/]+",
        "/invitations/{token}",
        path,
    )
    path = re.sub(
        r"/share-links/(?!by-id(?:/|$))[^/]+", "/share-links/{token}", path
    )
    path = re.sub(r"/grants/[^/]+", "/grants/{user_id}", path)
    path = re.sub(
        r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
        "{id}",
        path,
        flags=re.IGNORECASE,
    )
    return path


def _status_bucket(code: int) -> str:
    """Agrupa status code para baja cardinalidad."""
    if 200 <= code < 300:
        return "2xx"
    if 400 <= code < 500:
        return "4xx"
    if 500 <= code < 600:
        return "5xx"
    return "other"


# -----------------------------------------------------------------------------
# Exposición del endpoint /metrics
# -----------------------------------------------------------------------------


def get_metrics_response() -> tuple[bytes, str]:
    return generate_latest(_registry), CONTENT_TYPE_LATEST


def get_registry() -> CollectorRegistry:
    return _registry
