"""
Application settings and configuration management.

This module handles all environment variables and tunables for the brand
ingestion pipeline (time budget, browser, search enhancement, logging) using
Pydantic settings management for type safety and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every timing value that gates a pipeline stage lives here so that tests
    and deployments can shrink or stretch the budget without code changes.
    Settings are validated on load and cached for performance.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=True, alias="LOG_JSON")
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")

    # Time Budget
    total_budget_seconds: float = Field(default=10.0, gt=0, alias="TOTAL_BUDGET_SECONDS")
    navigation_timeout_ms: int = Field(default=8000, gt=0, alias="NAVIGATION_TIMEOUT_MS")
    network_idle_cap_ms: int = Field(default=2000, ge=0, alias="NETWORK_IDLE_CAP_MS")
    collection_reserve_seconds: float = Field(default=3.0, ge=0, alias="COLLECTION_RESERVE_SECONDS")
    product_page_reserve_seconds: float = Field(default=2.0, ge=0, alias="PRODUCT_PAGE_RESERVE_SECONDS")
    enhancement_reserve_seconds: float = Field(default=1.0, ge=0, alias="ENHANCEMENT_RESERVE_SECONDS")
    request_timeout_seconds: float = Field(default=15.0, gt=0, alias="REQUEST_TIMEOUT_SECONDS")

    # Crawl Limits
    max_product_pages: int = Field(default=4, ge=0, alias="MAX_PRODUCT_PAGES")
    max_collections: int = Field(default=1, ge=0, alias="MAX_COLLECTIONS")
    max_collection_links: int = Field(default=6, ge=0, alias="MAX_COLLECTION_LINKS")
    max_catalog_size: int = Field(default=8, ge=1, alias="MAX_CATALOG_SIZE")
    fetch_retry_attempts: int = Field(default=2, ge=1, alias="FETCH_RETRY_ATTEMPTS")

    # Browser
    browser_headless: bool = Field(default=True, alias="BROWSER_HEADLESS")
    browser_executable_path: Optional[str] = Field(default=None, alias="BROWSER_EXECUTABLE_PATH")
    browser_restart_seconds: int = Field(default=600, gt=0, alias="BROWSER_RESTART_SECONDS")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="USER_AGENT")
    viewport_width: int = Field(default=1920, alias="VIEWPORT_WIDTH")
    viewport_height: int = Field(default=1080, alias="VIEWPORT_HEIGHT")

    # Search Enhancement
    enable_search_enhancement: bool = Field(default=True, alias="ENABLE_SEARCH_ENHANCEMENT")
    search_endpoint: str = Field(
        default="https://html.duckduckgo.com/html/",
        alias="SEARCH_ENDPOINT"
    )
    search_timeout_seconds: float = Field(default=5.0, gt=0, alias="SEARCH_TIMEOUT_SECONDS")
    max_searches: int = Field(default=6, ge=0, alias="MAX_SEARCHES")
    max_search_results: int = Field(default=5, ge=1, alias="MAX_SEARCH_RESULTS")

    @field_validator("search_endpoint")
    @classmethod
    def validate_search_endpoint(cls, v: str) -> str:
        """Search endpoint must be an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("SEARCH_ENDPOINT must be an http(s) URL")
        return v

    @model_validator(mode="after")
    def validate_reserves(self) -> "Settings":
        """Stage reserves cannot exceed the total budget."""
        largest = max(
            self.collection_reserve_seconds,
            self.product_page_reserve_seconds,
            self.enhancement_reserve_seconds,
        )
        if largest > self.total_budget_seconds:
            raise ValueError("Stage reserves must not exceed TOTAL_BUDGET_SECONDS")
        return self

    @property
    def navigation_timeout_seconds(self) -> float:
        """Navigation timeout expressed in seconds."""
        return self.navigation_timeout_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
