import logging
import logging.handlers
import os
from typing import Optional

def _log_dir() -> str:
    return os.getenv('LOG_DIR', os.path.join(os.path.dirname(__file__), '..', '..', 'logs'))

class ScrapeLogger:
    """Custom logger for listing scrape operations"""

    def __init__(self, name: str = "listing_scraper"):
        self.logger = logging.getLogger(name)
        self._setup_logger()

    def _setup_logger(self):
        """Setup logger with appropriate handlers and formatters"""
        if self.logger.handlers:
            return  # Already configured

        self.logger.setLevel(logging.DEBUG if os.getenv('LOG_LEVEL', '').upper() == 'DEBUG' else logging.INFO)

        log_dir = _log_dir()
        os.makedirs(log_dir, exist_ok=True)

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        self.logger.addHandler(console_handler)

        # File handler for general logs
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'listing_scraper.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        self.logger.addHandler(file_handler)

        # Per-job log, only records that carry a job id
        jobs_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'scrape_jobs.log'),
            maxBytes=50*1024*1024,  # 50MB
            backupCount=10
        )
        jobs_handler.setLevel(logging.INFO)
        jobs_handler.setFormatter(logging.Formatter(
            '%(asctime)s - JOB_%(job_id)s - STRATEGY_%(strategy)s - %(levelname)s - %(message)s'
        ))
        jobs_handler.addFilter(lambda record: hasattr(record, 'job_id'))
        self.logger.addHandler(jobs_handler)

        # Error handler for critical issues
        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'errors.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        self.logger.addHandler(error_handler)

    @staticmethod
    def _extra(job_id: Optional[str], strategy: Optional[str]) -> dict:
        extra = {}
        if job_id is not None:
            extra['job_id'] = job_id
            # The jobs formatter needs both fields
            extra['strategy'] = strategy or 'SYSTEM'
        elif strategy is not None:
            extra['strategy'] = strategy
        return extra

    def log_job_submitted(self, job_id: str, url: str, created: bool):
        """Log a submission, noting whether an active job was reused"""
        message = f"Scrape job submitted for URL: {url}" if created else f"Reusing active scrape job for URL: {url}"
        self.logger.info(message, extra=self._extra(job_id, None))

    def log_attempt_start(self, job_id: str, attempt: int, max_attempts: int):
        """Log the start of a scrape attempt"""
        self.logger.info(f"Starting attempt {attempt}/{max_attempts}", extra=self._extra(job_id, None))

    def log_attempt_succeeded(self, job_id: str, attempt: int, photo_count: int, duration: float):
        """Log a successful attempt"""
        self.logger.info(
            f"Attempt {attempt} succeeded in {duration:.2f} seconds with {photo_count} photos",
            extra=self._extra(job_id, None)
        )

    def log_attempt_failed(self, job_id: str, attempt: int, error: str, failure_kind: str,
                           duration: Optional[float] = None):
        """Log the failure of a single attempt"""
        message = f"Attempt {attempt} failed ({failure_kind}): {error}"
        if duration is not None:
            message += f" (failed after {duration:.2f} seconds)"
        self.logger.warning(message, extra=self._extra(job_id, None))

    def log_retry_scheduled(self, job_id: str, next_attempt: int, delay_seconds: float):
        """Log a scheduled retry"""
        self.logger.warning(
            f"Retrying scrape (attempt #{next_attempt}) in {delay_seconds:.2f} seconds",
            extra=self._extra(job_id, None)
        )

    def log_job_failed(self, job_id: str, error: str, attempts: int):
        """Log the terminal failure of a job"""
        self.logger.error(f"Scrape job failed after {attempts} attempt(s): {error}", extra=self._extra(job_id, None))

    def log_strategy_stats(self, job_id: Optional[str], strategy: str, count: int,
                           error: Optional[str] = None):
        """Log the outcome of a single extraction strategy"""
        extra = self._extra(job_id, strategy)
        if error:
            self.logger.warning(f"Strategy crashed: {error}", extra=extra)
        else:
            self.logger.info(f"Strategy found {count} candidates", extra=extra)

    def debug(self, message: str, job_id: Optional[str] = None, strategy: Optional[str] = None):
        """Log debug message"""
        self.logger.debug(message, extra=self._extra(job_id, strategy))

    def info(self, message: str, job_id: Optional[str] = None, strategy: Optional[str] = None):
        """Log info message"""
        self.logger.info(message, extra=self._extra(job_id, strategy))

    def warning(self, message: str, job_id: Optional[str] = None, strategy: Optional[str] = None):
        """Log warning message"""
        self.logger.warning(message, extra=self._extra(job_id, strategy))

    def error(self, message: str, job_id: Optional[str] = None, strategy: Optional[str] = None, exc_info=None):
        """Log error message"""
        self.logger.error(message, extra=self._extra(job_id, strategy), exc_info=exc_info)

# Global logger instance
scrape_logger = ScrapeLogger()

def get_logger() -> ScrapeLogger:
    """Get the global scrape logger instance"""
    return scrape_logger

def setup_flask_logging(app):
    """Setup Flask application logging"""
    if not app.debug and not app.testing:
        log_dir = _log_dir()
        os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, 'flask_app.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Listing scraper startup')
