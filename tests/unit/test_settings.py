from unittest.mock import patch

import pytest
from pydantic import ValidationError

from brand_ingest.config.settings import Settings


def test_defaults(settings):
    assert settings.total_budget_seconds == 10.0
    assert settings.max_product_pages == 4
    assert settings.max_catalog_size == 8
    assert settings.fetch_retry_attempts == 2
    assert settings.navigation_timeout_seconds == 8.0

def test_real_settings_with_env():
    """Test real Settings class behavior with env vars."""
    with patch.dict("os.environ", {
        "TOTAL_BUDGET_SECONDS": "6",
        "MAX_PRODUCT_PAGES": "2",
        "ENABLE_SEARCH_ENHANCEMENT": "false",
        "REQUEST_TIMEOUT_SECONDS": "20",
    }, clear=True):
        settings = Settings(_env_file=None)
        assert settings.total_budget_seconds == 6.0
        assert settings.request_timeout_seconds == 20.0
        assert settings.max_product_pages == 2
        assert settings.enable_search_enhancement is False

def test_search_endpoint_must_be_http():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, SEARCH_ENDPOINT="ftp://search.example/")

def test_reserves_cannot_exceed_budget():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, TOTAL_BUDGET_SECONDS=2, COLLECTION_RESERVE_SECONDS=3)

def test_non_positive_budget_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, TOTAL_BUDGET_SECONDS=0)
