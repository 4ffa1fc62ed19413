"""
Tests for configuration, errors and logging helpers

Tests cover:
- Configuration file creation, loading and validation
- Dot-path updates, reset and backup
- Course defaults handed to new courses
- Database configuration from the environment
- Error serialization and validation reasons
- Sensitive data masking
- Loggers carrying course and user context
"""
import json
import logging

import pytest

from quickmail.core.database import DatabaseConfig, EngineManager
from quickmail.core.models import CourseConfig
from quickmail.core.models.course import PrependClass
from quickmail.utils.config_manager import AppConfig, ConfigManager
from quickmail.utils.errors import (
    ErrorCategory,
    ErrorHandler,
    InvalidConfigError,
    MissingConfigError,
    MissingSubjectAndRecipientsError,
    PermissionDeniedError,
    ValidationReason,
    format_error_message,
)
from quickmail.utils.logging import SensitiveDataFilter, SensitiveDataMasker, get_logger


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config" / "config.json"


class TestConfigManager:
    """Tests for ConfigManager"""

    def test_creates_default_file(self, config_path):
        """Test a missing file is created with defaults"""
        manager = ConfigManager(config_path)

        assert config_path.exists()
        assert manager.config == AppConfig()
        assert manager.config.mail.smtp_port == 587

    def test_loads_existing_file(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"mail": {"smtp_server": "smtp.school.edu"}}))

        manager = ConfigManager(config_path)

        assert manager.config.mail.smtp_server == "smtp.school.edu"
        assert manager.config.storage == AppConfig().storage

    def test_invalid_json(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text("{not json")

        with pytest.raises(InvalidConfigError):
            ConfigManager(config_path)

    def test_schema_mismatch(self, config_path):
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"defaults": {"role_selection": []}}))

        with pytest.raises(InvalidConfigError):
            ConfigManager(config_path)

    def test_set_config_persists(self, config_path):
        manager = ConfigManager(config_path)

        manager.set_config("defaults.prepend_class", "shortname")

        assert manager.get_course_defaults().prepend_class == PrependClass.SHORTNAME
        assert ConfigManager(config_path).config.defaults.prepend_class == PrependClass.SHORTNAME

    def test_set_config_unknown_key(self, config_path):
        manager = ConfigManager(config_path)

        with pytest.raises(MissingConfigError):
            manager.set_config("mail.carrier_pigeon", True)

    def test_set_config_invalid_value(self, config_path):
        manager = ConfigManager(config_path)

        with pytest.raises(InvalidConfigError):
            manager.set_config("mail.smtp_port", "not-a-port")

    def test_course_defaults_are_copies(self, config_path):
        manager = ConfigManager(config_path)

        defaults = manager.get_course_defaults()
        defaults.role_selection.append("guest")

        assert manager.get_course_defaults() == CourseConfig()

    def test_reset_and_backup(self, config_path):
        manager = ConfigManager(config_path)
        manager.set_config("mail.smtp_server", "smtp.school.edu")

        backup = manager.backup_config()
        manager.reset_to_defaults()

        assert json.loads(backup.read_text())["mail"]["smtp_server"] == "smtp.school.edu"
        assert manager.config == AppConfig()


class TestCourseConfig:
    def test_role_selection_cleaned(self):
        config = CourseConfig(role_selection=[" student", "", "student", "teacher "])

        assert config.role_selection == ["student", "teacher"]

    def test_role_selection_required(self):
        with pytest.raises(ValueError):
            CourseConfig(role_selection=["  "])


class TestDatabaseConfig:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DB_PAGE_SIZE", "25")
        monkeypatch.setenv("DB_ECHO", "true")

        config = DatabaseConfig()

        assert config.default_page_size == 25
        assert config.echo is True

    def test_page_size_validated(self, monkeypatch):
        monkeypatch.setenv("DB_PAGE_SIZE", "0")

        with pytest.raises(ValueError):
            DatabaseConfig()

    async def test_health_check(self, engine_manager):
        assert await engine_manager.health_check() is True

    async def test_context_manager_closes(self, tmp_path):
        async with EngineManager(tmp_path / "ctx.db") as manager:
            await manager.create_schema()
            assert await manager.health_check()

        assert manager._engine is None


class TestErrors:
    """Tests for the error hierarchy"""

    def test_to_dict(self):
        error = PermissionDeniedError(details={"course_id": 7})

        assert error.to_dict() == {
            "error_type": "PermissionDeniedError",
            "category": "authorization",
            "message": "You do not have permission to send messages here",
            "details": {"course_id": 7},
        }

    def test_validation_reason(self):
        error = MissingSubjectAndRecipientsError()

        assert error.reason == ValidationReason.MISSING_SUBJECT_AND_RECIPIENTS
        assert error.category == ErrorCategory.VALIDATION

    def test_handle_unknown_error(self):
        result = ErrorHandler.handle(RuntimeError("boom"), context="send", log_traceback=False)

        assert result["error_type"] == "UnknownError"
        assert result["details"] == {"context": "send"}

    def test_format_error_message(self):
        assert format_error_message(InvalidConfigError("Bad value")) == "Bad value"
        assert "unexpected" in format_error_message(KeyError("x"))


class TestSensitiveDataMasker:
    """Tests for masking secrets and addresses in logs"""

    def test_masks_passwords_and_emails(self):
        masker = SensitiveDataMasker()

        masked = masker.mask_string("login tess@example.com password=hunter22")

        assert "hunter22" not in masked
        assert "tess@example.com" not in masked
        assert "t***@e***" in masked

    def test_masks_sensitive_fields(self):
        masker = SensitiveDataMasker()

        masked = masker.mask_dict({"password": "hunter22", "mail": {"token": "abc"}, "port": 587})

        assert masked == {"password": "[REDACTED]", "mail": {"token": "[REDACTED]"}, "port": 587}

    def test_filter_applied_to_records(self):
        record = logging.LogRecord("quickmail", logging.INFO, __file__, 1, "smtp password=hunter22", None, None)

        assert SensitiveDataFilter().filter(record)
        assert "hunter22" not in record.getMessage()


class TestContextLogger:
    def test_fixed_context_attached(self, caplog):
        adapter = get_logger("tests.context", course_id=7, user_id=1)

        with caplog.at_level(logging.DEBUG, logger="quickmail"):
            adapter.info("Composing", extra={"context": {"message_id": 3}})

        assert caplog.records[-1].context == {"course_id": 7, "user_id": 1, "message_id": 3}

    def test_plain_logger_without_context(self):
        assert isinstance(get_logger("tests.plain"), logging.Logger)
