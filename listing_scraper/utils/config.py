import os
from typing import Dict, Any
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

SUPPORTED_FETCHER_BACKENDS = ('http', 'browser')

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

@dataclass
class ScrapingConfig:
    """Configuration for fetching, extraction and retry behaviour"""
    max_attempts: int = 5
    retry_base_delay_seconds: float = 2.0
    retry_max_delay_seconds: float = 60.0
    retry_backoff_multiplier: float = 2.0
    attempt_timeout_seconds: float = 45.0
    max_concurrent_jobs: int = 3
    fetcher_backend: str = "http"
    user_agent: str = DEFAULT_USER_AGENT
    min_content_length: int = 1000
    max_photos: int = 50
    platform_base_url: str = "https://www.vrbo.com"
    parallel_strategies: bool = True
    job_retention_hours: float = 24.0
    maintenance_interval_seconds: float = 60.0

@dataclass
class AppConfig:
    """Main application configuration"""
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: str = "*"

class ConfigManager:
    """Centralized configuration management"""

    def __init__(self):
        self._scraping_config = None
        self._app_config = None

    @property
    def scraping(self) -> ScrapingConfig:
        """Get scraping configuration"""
        if self._scraping_config is None:
            self._scraping_config = ScrapingConfig(
                max_attempts=int(os.getenv('MAX_SCRAPE_ATTEMPTS', '5')),
                retry_base_delay_seconds=float(os.getenv('RETRY_BASE_DELAY_SECONDS', '2')),
                retry_max_delay_seconds=float(os.getenv('RETRY_MAX_DELAY_SECONDS', '60')),
                retry_backoff_multiplier=float(os.getenv('RETRY_BACKOFF_MULTIPLIER', '2')),
                attempt_timeout_seconds=float(os.getenv('ATTEMPT_TIMEOUT_SECONDS', '45')),
                max_concurrent_jobs=int(os.getenv('MAX_CONCURRENT_JOBS', '3')),
                fetcher_backend=os.getenv('FETCHER_BACKEND', 'http').lower(),
                user_agent=os.getenv('SCRAPER_USER_AGENT', DEFAULT_USER_AGENT),
                min_content_length=int(os.getenv('MIN_CONTENT_LENGTH', '1000')),
                max_photos=int(os.getenv('MAX_PHOTOS', '50')),
                platform_base_url=os.getenv('PLATFORM_BASE_URL', 'https://www.vrbo.com').rstrip('/'),
                parallel_strategies=os.getenv('PARALLEL_STRATEGIES', 'true').lower() == 'true',
                job_retention_hours=float(os.getenv('JOB_RETENTION_HOURS', '24')),
                maintenance_interval_seconds=float(os.getenv('MAINTENANCE_INTERVAL_SECONDS', '60'))
            )
        return self._scraping_config

    @property
    def app(self) -> AppConfig:
        """Get application configuration"""
        if self._app_config is None:
            self._app_config = AppConfig(
                debug=os.getenv('DEBUG', 'false').lower() == 'true',
                host=os.getenv('HOST', '0.0.0.0'),
                port=int(os.getenv('PORT', '5000')),
                cors_origins=os.getenv('CORS_ORIGINS', '*')
            )
        return self._app_config

    def validate_config(self) -> Dict[str, Any]:
        """Validate configuration and return any issues"""
        issues = []
        scraping = self.scraping

        if scraping.max_attempts < 1:
            issues.append("MAX_SCRAPE_ATTEMPTS must be at least 1")

        if scraping.fetcher_backend not in SUPPORTED_FETCHER_BACKENDS:
            issues.append(f"FETCHER_BACKEND must be one of: {', '.join(SUPPORTED_FETCHER_BACKENDS)}")

        if scraping.retry_base_delay_seconds > scraping.retry_max_delay_seconds:
            issues.append("RETRY_BASE_DELAY_SECONDS is larger than RETRY_MAX_DELAY_SECONDS")

        if scraping.attempt_timeout_seconds <= 0:
            issues.append("ATTEMPT_TIMEOUT_SECONDS must be positive")

        if scraping.max_concurrent_jobs < 1:
            issues.append("MAX_CONCURRENT_JOBS must be at least 1")

        return {
            'valid': len(issues) == 0,
            'issues': issues,
            'config_summary': {
                'scraping': {
                    'max_attempts': scraping.max_attempts,
                    'attempt_timeout_seconds': scraping.attempt_timeout_seconds,
                    'fetcher_backend': scraping.fetcher_backend,
                    'max_concurrent_jobs': scraping.max_concurrent_jobs,
                    'parallel_strategies': scraping.parallel_strategies
                },
                'app': {
                    'debug': self.app.debug,
                    'host': self.app.host,
                    'port': self.app.port
                }
            }
        }

# Global configuration instance
config = ConfigManager()

def get_config() -> ConfigManager:
    """Get the global configuration instance"""
    return config
