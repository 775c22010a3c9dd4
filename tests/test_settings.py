"""Tests for environment-driven settings."""

import pytest

from shortlink.core.setting import AllocationStrategy, EnvSettingsOptions, Settings


@pytest.mark.parametrize("env, docs", [
    ("dev", True),
    ("staging", True),
    ("production", False),
])
def test_docs_follow_environment(env, docs):
    configured = Settings(ENV_SETTING=env)

    assert configured.ENV_SETTING is EnvSettingsOptions(env)
    assert configured.docs_enabled is docs


def test_allocation_config_mirrors_settings():
    configured = Settings(ALLOCATION_STRATEGY="random", SHORT_CODE_LENGTH=8, ALLOCATION_MAX_RETRIES=3)

    config = configured.allocation_config()

    assert config.strategy is AllocationStrategy.random
    assert config.code_length == 8
    assert config.max_retries == 3
