"""
Tests for settings and the synthesis context.
"""

import logging

import pytest
from pydantic import ValidationError

from trait_clauses.config import PACKAGE_LOGGER, Settings, configure_logging, get_settings
from trait_clauses.context import VariableAllocator, create_synthesis_context
from trait_clauses.ir import BoundVar, VariableKind


@pytest.fixture
def clean_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self, clean_settings, monkeypatch):
        monkeypatch.delenv("TRAIT_CLAUSES_FILTER_ENABLED", raising=False)
        settings = get_settings()
        assert settings.filter_enabled is True
        assert settings.emit_well_formed_clauses is True

    def test_environment_override(self, clean_settings, monkeypatch):
        monkeypatch.setenv("TRAIT_CLAUSES_FILTER_ENABLED", "false")
        monkeypatch.setenv("TRAIT_CLAUSES_LOG_LEVEL", "debug")
        settings = get_settings()
        assert settings.filter_enabled is False
        assert settings.log_level == "DEBUG"

    def test_settings_are_cached(self, clean_settings):
        assert get_settings() is get_settings()

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_configure_logging(self):
        logger = logging.getLogger(PACKAGE_LOGGER)
        previous = logger.level
        try:
            configure_logging(Settings(log_level="info"))
            assert logger.level == logging.INFO
        finally:
            logger.setLevel(previous)


class TestSynthesisContext:
    """Each call gets isolated, mutable state."""

    def test_overrides_do_not_touch_cached_settings(self, clean_settings):
        ctx = create_synthesis_context(filter_enabled=False)
        assert ctx.settings.filter_enabled is False
        assert get_settings().filter_enabled is True

    def test_explicit_settings(self):
        settings = Settings(emit_well_formed_clauses=False)
        assert create_synthesis_context(settings).settings is settings

    def test_allocators_are_independent(self):
        first = create_synthesis_context()
        second = create_synthesis_context()
        first.allocator.fresh()
        first.allocator.fresh()
        assert second.allocator.fresh() == BoundVar(0)

    def test_allocator_kinds(self):
        allocator = VariableAllocator()
        assert allocator.fresh_many([VariableKind.TY, VariableKind.LIFETIME]) == (
            BoundVar(0),
            BoundVar(1, VariableKind.LIFETIME),
        )
        assert allocator.allocated == 2

    def test_summary(self):
        ctx = create_synthesis_context()
        ctx.record_builder_run("impl", 3)
        ctx.record_builder_run("impl", 1)
        summary = ctx.get_summary()
        assert summary["clauses_emitted"] == 4
        assert summary["builder_runs"] == {"impl": 2}
        assert summary["variables_allocated"] == 0
