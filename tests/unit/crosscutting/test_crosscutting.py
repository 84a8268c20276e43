"""
Name: Crosscutting Tests (config / logging / metrics / errors)

Responsibilities:
  - Validaciones de Settings (fail-fast al arrancar)
  - Redacción de secretos y formato JSON de logs
  - Normalización de endpoints y contadores Prometheus
  - Jerarquía de errores tipados (status / code estables)
"""

import json
import logging
import sys

import pytest
from pydantic import ValidationError

from workspace_authz.context import clear_context, set_request_context
from workspace_authz.crosscutting import exceptions as exc
from workspace_authz.crosscutting.config import Settings
from workspace_authz.crosscutting.logger import JSONFormatter, _Redactor, setup_logger
from workspace_authz.crosscutting.metrics import (
    _normalize_endpoint,
    get_registry,
    record_access_check,
    record_grant_write,
)

pytestmark = pytest.mark.unit


class TestSettings:
    def test_defaults_use_memory_backend(self):
        settings = Settings()

        assert settings.repository_backend == "memory"
        assert settings.max_tree_depth > 0

    def test_postgres_requires_database_url(self):
        with pytest.raises(ValidationError, match="DATABASE_URL"):
            Settings(repository_backend="postgres", database_url="")

    def test_backend_is_normalized(self):
        settings = Settings(repository_backend=" Postgres ", database_url="postgresql://x")

        assert settings.repository_backend == "postgres"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(repository_backend="redis")

    def test_pool_bounds_validated(self):
        with pytest.raises(ValidationError, match="db_pool_min_size"):
            Settings(db_pool_min_size=5, db_pool_max_size=2)

    @pytest.mark.parametrize("field", ["invitation_token_bytes", "share_link_token_bytes"])
    def test_short_tokens_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 8})

    def test_non_positive_depth_rejected(self):
        with pytest.raises(ValidationError):
            Settings(max_tree_depth=0)

    def test_allowed_origins_list(self):
        settings = Settings(allowed_origins="http://a.test, ,http://b.test ")

        assert settings.get_allowed_origins_list() == ["http://a.test", "http://b.test"]

    def test_is_production(self):
        assert Settings(app_env="Production").is_production()
        assert not Settings(app_env="test").is_production()


class TestRedactor:
    def test_sensitive_keys_are_redacted(self):
        redactor = _Redactor()

        result = redactor.sanitize(
            {"token": "abc", "nested": {"Authorization": "Bearer x"}, "folder_id": "f1"}
        )

        assert result["token"] == "***REDACTADO***"
        assert result["nested"]["Authorization"] == "***REDACTADO***"
        assert result["folder_id"] == "f1"

    def test_long_strings_are_truncated(self):
        result = _Redactor(max_str=5).sanitize("abcdefghij")

        assert result.startswith("abcde")
        assert result.endswith("(truncado)")

    def test_bytes_are_summarized(self):
        assert _Redactor().sanitize(b"1234") == "<bytes 4B>"

    def test_depth_is_limited(self):
        result = _Redactor(max_depth=1).sanitize({"a": {"b": {"c": 1}}})

        assert result["a"]["b"] == "***TRUNCADO***"


class TestJSONFormatter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord(
            name="workspace-authz.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Invitación emitida",
            args=(),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_payload_includes_context_and_redacts(self):
        set_request_context(request_id="req-1", method="POST", path="/v1/nodes")
        try:
            line = JSONFormatter().format(
                self._record(token="secret-token", folder_id="f1")
            )
        finally:
            clear_context()

        payload = json.loads(line)
        assert payload["message"] == "Invitación emitida"
        assert payload["level"] == "INFO"
        assert payload["request_id"] == "req-1"
        assert payload["folder_id"] == "f1"
        assert payload["token"] == "***REDACTADO***"

    def test_exception_is_attached(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = self._record()
            record.exc_info = sys.exc_info()

        payload = json.loads(JSONFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "boom"

    def test_setup_logger_does_not_duplicate_handlers(self):
        name = "workspace-authz-test-setup"
        log = setup_logger(name, level="DEBUG", use_json=True)
        setup_logger(name, level="DEBUG", use_json=True)

        try:
            assert len(log.handlers) == 1
            assert isinstance(log.handlers[0].formatter, JSONFormatter)
            assert log.level == logging.DEBUG
        finally:
            log.handlers.clear()


class TestMetrics:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/v1/invitations/abcDEF123/accept", "/v1/invitations/{token}/accept"),
            ("/v1/invitations/received", "/v1/invitations/received"),
            ("/v1/invitations/sent", "/v1/invitations/sent"),
            (
                "/v1/invitations/by-id/3f2b8c1e-1111-4c2d-9e8f-000000000001",
                "/v1/invitations/by-id/{id}",
            ),
            ("/v1/share-links/tok_123/use", "/v1/share-links/{token}/use"),
            (
                "/v1/folders/3f2b8c1e-1111-4c2d-9e8f-000000000001/grants/user-9",
                "/v1/folders/{id}/grants/{user_id}",
            ),
        ],
    )
    def test_normalize_endpoint(self, path, expected):
        assert _normalize_endpoint(path) == expected

    def test_access_check_counter(self):
        labels = {"role": "viewer", "outcome": "granted"}
        before = get_registry().get_sample_value("authz_access_checks_total", labels) or 0

        record_access_check("viewer", granted=True)

        after = get_registry().get_sample_value("authz_access_checks_total", labels)
        assert after == before + 1

    def test_denied_check_uses_none_role(self):
        labels = {"role": "none", "outcome": "denied"}
        before = get_registry().get_sample_value("authz_access_checks_total", labels) or 0

        record_access_check(None, granted=False)

        assert get_registry().get_sample_value("authz_access_checks_total", labels) == (
            before + 1
        )

    def test_grant_write_counter(self):
        labels = {"source": "share_link", "changed": "false"}
        before = get_registry().get_sample_value("authz_grant_writes_total", labels) or 0

        record_grant_write("share_link", changed=False)

        assert get_registry().get_sample_value("authz_grant_writes_total", labels) == (
            before + 1
        )


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "error_cls,status",
        [
            (exc.DatabaseError, 503),
            (exc.TreeIntegrityError, 500),
            (exc.NotAuthenticatedError, 401),
            (exc.NotAuthorizedError, 403),
            (exc.InvalidRequestError, 400),
            (exc.NodeNotFoundError, 404),
            (exc.InvitationAlreadyAcceptedError, 409),
            (exc.InvitationExpiredError, 410),
            (exc.ShareLinkExhaustedError, 410),
        ],
    )
    def test_status_codes(self, error_cls, status):
        assert error_cls("x").status_code == status

    def test_folder_not_found_is_node_not_found(self):
        error = exc.FolderNotFoundError("gone")

        assert isinstance(error, exc.NodeNotFoundError)
        assert error.error_code == "FOLDER_NOT_FOUND"

    def test_to_response_carries_error_id(self):
        error = exc.GrantNotFoundError("missing", error_id="err-1")

        assert error.to_response().to_dict() == {
            "error_code": "GRANT_NOT_FOUND",
            "message": "missing",
            "error_id": "err-1",
        }
