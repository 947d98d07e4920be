"""
Scraper Configuration
Loads run options from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    """Run settings loaded from environment variables."""

    # Source selection
    scraper_source: str = "automart"

    # Pagination / crawl behaviour
    scrape_max_pages: int = 20
    scrape_include_completed: bool = True
    scrape_detail_pages: bool = True
    scrape_detail_delay: int = 1500         # ms
    scrape_inspection_reports: bool = False
    scrape_inspection_delay: int = 2000     # ms

    # Credentials
    onbid_api_key: str = ""

    # Backend submission
    api_url: str = "http://auto-auction-api:8080/api"
    submit_max_attempts: int = 3
    submit_retry_base_seconds: float = 1.0
    submit_timeout: float = 30.0

    # Browser
    browser_headless: bool = True
    browser_user_agent: str = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

    # Backups
    output_dir: Path = Path(".")

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[Path] = None

    @property
    def api_base_url(self) -> str:
        return self.api_url.rstrip("/")

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if __import__("pathlib").Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()
