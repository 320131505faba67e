"""
SLA External Service Integrations
==================================

External services for SLA monitoring:
- Business calendar YAML file with hot reload (watchdog)
- Slack webhook breach notifications
- APScheduler for the periodic breach sweep
"""

import asyncio
import threading
from datetime import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.config import Settings, settings as default_settings
from src.core import ConfigurationException, ExternalServiceException
from src.shared.infrastructure.logging import get_logger
from src.sla.application import IBreachNotifier, ICalendarProvider
from src.sla.domain import BreachNotice, BusinessCalendar

logger = get_logger(__name__)


def calendar_from_settings(settings: Optional[Settings] = None) -> BusinessCalendar:
    """Build the default business calendar from application settings."""
    settings = settings or default_settings
    return BusinessCalendar(
        business_start=settings.business_day_start,
        business_end=settings.business_day_end,
        weekend_days=settings.weekend_days,
        timezone=settings.calendar_timezone
    )


def _clock_value(value: Any) -> Any:
    # PyYAML reads unquoted HH:MM as a base-60 integer of minutes
    if isinstance(value, int) and not isinstance(value, bool):
        return time(value // 60, value % 60)
    return value


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for calendar config file changes."""

    def __init__(self, config_manager: "CalendarConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def _reload_if_watched(self, path: str) -> None:
        if Path(path).resolve() == self.config_path.resolve():
            logger.info("Calendar config file changed", extra={"path": path})
            self.config_manager.reload()

    def on_modified(self, event):
        """Handle file modification event."""
        if not event.is_directory:
            self._reload_if_watched(event.src_path)

    def on_created(self, event):
        """Editors that save by replacing the file emit a create event."""
        if not event.is_directory:
            self._reload_if_watched(event.src_path)


class CalendarConfigManager(ICalendarProvider):
    """
    Thread-safe business calendar holder with hot-reload support.

    Values missing from the YAML file fall back to the defaults built
    from settings. A reload that fails keeps the previous calendar.
    """

    def __init__(self, defaults: Optional[BusinessCalendar] = None):
        self._defaults = defaults or calendar_from_settings()
        self._calendar: Optional[BusinessCalendar] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> BusinessCalendar:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file exists but is invalid
        """
        self._path = Path(path)
        calendar = self._load_from_file(self._path)
        with self._lock:
            self._calendar = calendar
        return calendar

    def _load_from_file(self, path: Path) -> BusinessCalendar:
        """Load and parse YAML config file."""
        if not path.exists():
            logger.warning(
                "Calendar config file not found, using defaults",
                extra={"path": str(path)}
            )
            return self._defaults

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationException(
                f"Cannot read calendar config {path}",
                {"error": str(e)}
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationException(f"Calendar config {path} must be a mapping")

        values = self._defaults.model_dump()
        try:
            values.update({
                key: _clock_value(value) if key in ("business_start", "business_end") else value
                for key, value in data.items()
                if key in BusinessCalendar.model_fields
            })
            return BusinessCalendar(**values)
        except ValidationError as e:
            raise ConfigurationException(
                f"Invalid calendar config {path}",
                {"errors": e.errors(include_url=False, include_context=False)}
            ) from e
        except ValueError as e:
            raise ConfigurationException(
                f"Invalid calendar config {path}",
                {"error": str(e)}
            ) from e

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_calendar = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error(
                "Failed to reload calendar config, keeping previous",
                extra={"error": e.message, "details": e.details}
            )
            return False

        with self._lock:
            self._calendar = new_calendar
        logger.info("Calendar configuration reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching configuration file for changes.

        Skips watching if the file does not exist or the platform has no
        file notification support (e.g. some container runtimes).
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Calendar config file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.resolve().parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching calendar config", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning(
                "File watching not available, using static calendar",
                extra={"error": str(e)}
            )
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    def get_calendar(self) -> BusinessCalendar:
        with self._lock:
            return self._calendar or self._defaults

    @property
    def calendar(self) -> BusinessCalendar:
        """Get current calendar."""
        return self.get_calendar()


class SlackBreachNotifier(IBreachNotifier):
    """
    Slack webhook client announcing breached tickets.

    Delivery is attempted a fixed number of times with a fixed delay in
    between; total failure surfaces as ExternalServiceException.
    """

    SERVICE_NAME = "slack"

    def __init__(
        self,
        webhook_url: str,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._webhook_url = webhook_url
        self._channel = channel or default_settings.slack_channel
        self._timeout = timeout_seconds or default_settings.slack_timeout_seconds
        self._max_attempts = max_attempts or default_settings.slack_max_attempts
        self._retry_delay = (
            default_settings.slack_retry_delay_seconds
            if retry_delay_seconds is None else retry_delay_seconds
        )
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_message(self, notice: BreachNotice) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": ":rotating_light: SLA Breach",
                    "emoji": True
                }
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*{notice.title}*"}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Ticket:*\n{notice.ticket_id}"},
                    {"type": "mrkdwn", "text": f"*Priority:*\n{notice.priority.title()}"},
                    {"type": "mrkdwn", "text": f"*Status:*\n{notice.status}"},
                    {"type": "mrkdwn", "text": f"*Due:*\n{notice.due_date.isoformat()}"},
                    {"type": "mrkdwn", "text": f"*Group:*\n{notice.group_id or '-'}"},
                    {"type": "mrkdwn", "text": f"*Assignee:*\n{notice.assigned_to or 'unassigned'}"}
                ]
            }
        ]
        if notice.tenant_id:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Tenant: {notice.tenant_id}"}]
            })

        return {
            "channel": self._channel,
            "text": f"SLA breached: {notice.title}",
            "blocks": blocks
        }

    async def notify_breach(self, notice: BreachNotice) -> None:
        """
        Send a breach notice to the Slack webhook.

        Raises:
            ExternalServiceException: If every attempt failed
        """
        message = self._build_message(notice)
        last_error = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    logger.info(
                        "Slack breach notification sent",
                        extra={"ticket_id": notice.ticket_id, "attempt": attempt}
                    )
                    return

                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt}
                )
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.warning(
                    "Slack notification attempt failed",
                    extra={"error": last_error, "attempt": attempt, "ticket_id": notice.ticket_id}
                )

            if attempt < self._max_attempts:
                await asyncio.sleep(self._retry_delay)

        raise ExternalServiceException(
            self.SERVICE_NAME,
            f"breach notification failed after {self._max_attempts} attempts",
            {"ticket_id": notice.ticket_id, "last_error": last_error}
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class BreachSweepScheduler:
    """
    Wrapper for APScheduler running the periodic breach sweep.

    Manages the lifecycle of the scheduler and jobs.
    """

    JOB_ID = "breach_sweep"

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Breach sweep scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="SLA Breach Sweep",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Breach sweep scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler; an in-flight sweep is abandoned."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Breach sweep scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
