"""
Scraper Manager - orchestrates one ingestion run.

Selects the adapter for the configured source, owns the browser session for
the duration of the run, writes the local JSON backups and hands the
deduplicated items to the submission pipeline.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type
from datetime import datetime, timezone
import logging

from .base import AdapterConfig, BaseAdapter, Colors, ScrapeResult
from .config import SOURCES, get_source_config
from .crawlers.browser import BrowserSession
from .errors import UnknownSourceError
from .pipeline import ApiClient, deduplicate_items
from .settings import Settings, settings as default_settings

from .sites.automart import AutomartAdapter
from .sites.court_auction import CourtAuctionAdapter
from .sites.onbid import OnbidAdapter

logger = logging.getLogger(__name__)


# Registry of implemented adapters, keyed like SOURCES
ADAPTER_REGISTRY: Dict[str, Type[BaseAdapter]] = {
    'automart': AutomartAdapter,
    'court_auction': CourtAuctionAdapter,
    'onbid': OnbidAdapter,
}


def get_adapter(source_key: str) -> BaseAdapter:
    """
    Build the adapter for a source.

    Raises:
        UnknownSourceError: No adapter is registered for source_key
    """
    key = (source_key or '').strip().lower()
    if key not in ADAPTER_REGISTRY:
        raise UnknownSourceError(source_key, ADAPTER_REGISTRY.keys())
    return ADAPTER_REGISTRY[key](get_source_config(key))


def write_backup(path: Path, records: List[Dict[str, Any]]) -> None:
    """Write records as pretty-printed UTF-8 JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(records, f, ensure_ascii=False, indent=2)


class ScraperManager:
    """
    Runs one source end to end.

    Usage:
        manager = ScraperManager(settings)
        result = await manager.run('automart')
        sys.exit(result.exit_code)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        api_client: Optional[ApiClient] = None,
        session_factory: Optional[Callable[[], BrowserSession]] = None,
    ):
        """
        Initialize the manager.

        Args:
            settings: Run settings (defaults to the environment-loaded instance)
            api_client: Submission client (built from settings when omitted)
            session_factory: Builds the browser session for browser-driven sources
        """
        self.settings = settings or default_settings
        self.api_client = api_client
        self.session_factory = session_factory or self._default_session
        self.results: Dict[str, ScrapeResult] = {}

    def _default_session(self) -> BrowserSession:
        return BrowserSession(
            headless=self.settings.browser_headless,
            user_agent=self.settings.browser_user_agent,
        )

    def _build_api_client(self) -> ApiClient:
        return ApiClient(
            self.settings.api_base_url,
            timeout=self.settings.submit_timeout,
            max_attempts=self.settings.submit_max_attempts,
            retry_base_seconds=self.settings.submit_retry_base_seconds,
        )

    async def run(
        self,
        source_key: str,
        config: Optional[AdapterConfig] = None,
        adapter: Optional[BaseAdapter] = None,
    ) -> ScrapeResult:
        """
        Scrape, back up and submit one source.

        Args:
            source_key: Source identifier (automart|court_auction|onbid)
            config: Per-run options (defaults to settings)
            adapter: Pre-built adapter (defaults to the registry entry)

        Returns:
            ScrapeResult; exit_code is 1 when the run is fatal

        Raises:
            UnknownSourceError: source_key has no adapter
        """
        adapter = adapter or get_adapter(source_key)
        config = config or AdapterConfig.from_settings(self.settings)
        result = ScrapeResult(source=source_key, started_at=datetime.now(timezone.utc))

        logger.info(Colors.bold(f"Starting {adapter.name} scraper..."))
        logger.info(f"   API URL: {self.settings.api_base_url}")
        logger.info(f"   Max pages: {config.max_pages}")
        logger.info(f"   Include completed: {config.include_completed}")
        logger.info(f"   Fetch inspection reports: {config.fetch_inspection_reports}")

        # Scrape
        items = await self._scrape(adapter, config, result)
        if items is None:
            result.completed_at = datetime.now(timezone.utc)
            self.results[source_key] = result
            return result

        unique_items = deduplicate_items(items)
        reports = list(adapter.inspection_reports)
        result.total = len(unique_items)
        result.inspection_total = len(reports)

        for skip in adapter.skipped:
            result.errors += 1
            result.error_details.append(skip)

        # Backup before submission, regardless of its outcome
        output_dir = Path(self.settings.output_dir)
        self._backup(output_dir / f"vehicles-{source_key}.json", [item.to_dict() for item in unique_items])
        self._backup(output_dir / f"inspections-{source_key}.json", [report.to_dict() for report in reports])
        logger.info(f"Total: {Colors.green(len(unique_items))} unique items ({len(items) - len(unique_items)} duplicates dropped)")

        # Submit
        client = self.api_client or self._build_api_client()
        try:
            if unique_items:
                logger.info(f"Submitting {len(unique_items)} items to API at {client.base_url}...")
                item_result = await client.submit_items(unique_items)
                result.submitted = item_result.submitted
                result.failed = item_result.failed
                result.error_details.extend(item_result.error_details)

            if result.fatal:
                logger.error(Colors.red("All submissions failed; skipping inspection reports"))
            elif reports:
                logger.info(f"Submitting {len(reports)} inspection reports to API...")
                report_result = await client.submit_inspection_reports(reports)
                result.inspection_submitted = report_result.submitted
                result.inspection_failed = report_result.failed
                result.error_details.extend(report_result.error_details)
                logger.info(
                    f"Inspection reports: {report_result.submitted} submitted, {report_result.failed} failed"
                )
        finally:
            if self.api_client is None:
                await client.close()

        result.completed_at = datetime.now(timezone.utc)
        self.results[source_key] = result

        summary = (
            f"Completed: {result.total} scraped, {result.submitted} submitted, {result.failed} failed"
        )
        if result.fatal:
            logger.error(Colors.red(summary))
        else:
            logger.info(Colors.green(f"✅ {summary}"))
        return result

    async def _scrape(
        self,
        adapter: BaseAdapter,
        config: AdapterConfig,
        result: ScrapeResult,
    ) -> Optional[List]:
        """Run the adapter inside its session; None means the run aborted."""
        session = self.session_factory() if adapter.requires_browser else None
        try:
            page = await session.start() if session else None
            try:
                await adapter.init(page, config)
                return await adapter.scrape()
            finally:
                await adapter.cleanup()
        except Exception as e:
            logger.error(f"{Colors.red('Scraper error')} ({adapter.name}): {e}")
            result.aborted = True
            result.errors += 1
            result.error_details.append({'key': result.source, 'error': str(e)})
            return None
        finally:
            if session:
                await session.close()

    def _backup(self, path: Path, records: List[Dict[str, Any]]):
        try:
            write_backup(path, records)
            logger.info(f"Saved {len(records)} records to {path}")
        except OSError as e:
            logger.error(f"Failed to write backup {path}: {e}")

    def list_sources(self) -> List[Dict]:
        """List configured sources and whether an adapter exists for each."""
        sources = []
        for key, config in SOURCES.items():
            sources.append({
                'key': key,
                'name': config.name,
                'short_name': config.short_name,
                'type': config.scraper_type.value,
                'implemented': key in ADAPTER_REGISTRY,
                'url': config.listing_url,
            })
        return sources

