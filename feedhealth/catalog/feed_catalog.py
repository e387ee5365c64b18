"""
Feed Catalog
============

Loads the tracked feeds from the Cloudant publisher database. Each
publisher document carries an RSS_Feeds array; the feeds are flattened
into FeedDescriptors in document order.
"""

from typing import Any, Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from ..config.settings import CatalogSettings
from ..models import FeedDescriptor
from ..utils.exceptions import CatalogError, ErrorCode
from ..utils.logging import get_logger_for_component

PUBLISHER_SELECTOR = {
    "_id": {"$gt": "0"},
    "Publisher_Name": {"$exists": True},
    "RSS_Feeds": {"$exists": True},
}


def parse_publisher_documents(docs: List[Dict[str, Any]], logger=None) -> List[FeedDescriptor]:
    """Flatten publisher documents into feed descriptors.

    Feeds without a name are dropped with a warning.

    Raises:
        CatalogError: a document does not have the expected shape
    """
    feeds = []

    for doc in docs:
        publisher = doc.get("Publisher_Name")
        rss_feeds = doc.get("RSS_Feeds")
        if not isinstance(publisher, str) or not isinstance(rss_feeds, list):
            raise CatalogError(
                f"Publisher document {doc.get('_id')} has an invalid Publisher_Name or RSS_Feeds",
                error_code=ErrorCode.CATALOG_INVALID_RESPONSE,
            )

        for entry in rss_feeds:
            if not isinstance(entry, dict):
                raise CatalogError(
                    f"Publisher document {doc.get('_id')} has a malformed RSS_Feeds entry",
                    error_code=ErrorCode.CATALOG_INVALID_RESPONSE,
                )

            name = (entry.get("RSS_Feed_Name") or "").strip()
            if not name:
                if logger:
                    logger.warning(f"Skipping unnamed feed of publisher {publisher}")
                continue

            feeds.append(FeedDescriptor(
                publisher=publisher,
                feed_name=name,
                feed_url=entry.get("RSS_Feed_URL") or "",
                last_updated=entry.get("Last_Updated_Date"),
                paused=bool(entry.get("Pause_Ingestion", False)),
            ))

    return feeds


class CloudantFeedCatalog:
    """Feed catalog backed by a Cloudant _find query."""

    def __init__(self, settings: CatalogSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.logger = get_logger_for_component("catalog")

        if settings.username:
            self.session.auth = HTTPBasicAuth(settings.username, settings.password or "")
        elif settings.bearer_token:
            self.session.headers["Authorization"] = f"Bearer {settings.bearer_token}"

    @property
    def find_url(self) -> str:
        return f"{self.settings.url}/{self.settings.db_name}/_find"

    def _find_page(self, bookmark: Optional[str]) -> Dict[str, Any]:
        query = {"selector": PUBLISHER_SELECTOR, "limit": self.settings.page_size}
        if bookmark:
            query["bookmark"] = bookmark

        try:
            response = self.session.post(
                self.find_url, json=query, timeout=self.settings.request_timeout
            )
        except requests.RequestException as e:
            raise CatalogError(
                f"Feed catalog query failed: {e}", db_name=self.settings.db_name
            ) from e

        if response.status_code // 100 != 2:
            raise CatalogError(
                f"Feed catalog query returned HTTP {response.status_code}: {response.text[:500]}",
                db_name=self.settings.db_name,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise CatalogError(
                f"Feed catalog response is not valid JSON: {e}",
                db_name=self.settings.db_name,
                error_code=ErrorCode.CATALOG_INVALID_RESPONSE,
            ) from e

        if not isinstance(payload, dict) or not isinstance(payload.get("docs"), list):
            raise CatalogError(
                "Feed catalog response has no docs array",
                db_name=self.settings.db_name,
                error_code=ErrorCode.CATALOG_INVALID_RESPONSE,
            )
        return payload

    def fetch_documents(self) -> List[Dict[str, Any]]:
        """Fetch every publisher document, following _find bookmarks."""
        docs: List[Dict[str, Any]] = []
        bookmark = None

        while True:
            page = self._find_page(bookmark)
            docs.extend(page["docs"])

            bookmark = page.get("bookmark")
            if len(page["docs"]) < self.settings.page_size or not bookmark:
                break

        return docs

    def fetch_feeds(self) -> List[FeedDescriptor]:
        """Load all tracked feeds.

        Raises:
            CatalogError: the catalog could not be queried or parsed
        """
        docs = self.fetch_documents()
        feeds = parse_publisher_documents(docs, logger=self.logger)

        paused = sum(1 for feed in feeds if feed.paused)
        self.logger.info(
            f"Loaded {len(feeds)} feeds ({paused} paused) from {len(docs)} publishers"
        )
        return feeds
