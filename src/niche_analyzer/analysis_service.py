"""High-level service that creates analyses and applies delete/restore edits."""
from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Protocol, Sequence, Tuple

import pandas as pd

from . import engine
from .models import AnalysisView, BusinessRow, KeywordRow, ProductRow, Session
from .parsers import CsvSource, parse_business_rows, parse_keyword_rows, parse_product_rows
from .utils import ensure_directory

logger = logging.getLogger(__name__)

EXPORT_TABLES = ("competitors", "keywords", "products", "roots")


class Repository(Protocol):
    def save(self, session: Session) -> None: ...

    def load(self, session_id: str) -> Session: ...


@dataclass
class UpdateResult:
    analysis_id: str
    recalculated: bool
    new_market_sv: int
    affected_competitors: List[str] = field(default_factory=list)
    affected_keywords: List[str] = field(default_factory=list)


@dataclass
class AnalysisService:
    repository: Repository
    _locks: weakref.WeakValueDictionary[str, threading.Lock] = field(
        default_factory=weakref.WeakValueDictionary, init=False, repr=False
    )
    _locks_guard: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def create_analysis(
        self,
        keyword_rows: Iterable[KeywordRow],
        business_rows: Iterable[BusinessRow],
        product_rows: Iterable[ProductRow],
    ) -> AnalysisView:
        session = engine.initialize(keyword_rows, business_rows, product_rows)
        self.repository.save(session)
        logger.info(
            "Created analysis %s (market SV %d)", session.id, session.calculations.total_market_sv
        )
        return engine.build_view(session)

    def create_analysis_from_files(
        self, keyword_file: CsvSource, business_file: CsvSource, product_file: CsvSource
    ) -> AnalysisView:
        return self.create_analysis(
            parse_keyword_rows(keyword_file),
            parse_business_rows(business_file),
            parse_product_rows(product_file),
        )

    def get_analysis(self, analysis_id: str) -> AnalysisView:
        return engine.build_view(self.repository.load(analysis_id))

    def update_keywords(
        self, analysis_id: str, deleted: Sequence[str] = (), restored: Sequence[str] = ()
    ) -> UpdateResult:
        logger.info("Updating keywords of %s: -%d +%d", analysis_id, len(deleted), len(restored))

        def apply(session: Session) -> None:
            engine.delete_keywords(session, deleted)
            engine.restore_keywords(session, restored)

        session, changed = self._update(analysis_id, apply)
        return self._result(session, changed, affected_competitors=[c.asin for c in session.competitors])

    def update_root_keywords(
        self, analysis_id: str, deleted: Sequence[str] = (), restored: Sequence[str] = ()
    ) -> UpdateResult:
        logger.info("Updating root keywords of %s: -%d +%d", analysis_id, len(deleted), len(restored))

        def apply(session: Session) -> None:
            if deleted:
                engine.delete_root_keywords(session, deleted)
            if restored:
                engine.restore_root_keywords(session, restored)

        session, changed = self._update(analysis_id, apply)
        return self._result(session, changed, affected_competitors=[c.asin for c in session.competitors])

    def update_competitors(
        self, analysis_id: str, deleted: Sequence[str] = (), restored: Sequence[str] = ()
    ) -> UpdateResult:
        logger.info("Updating competitors of %s: -%d +%d", analysis_id, len(deleted), len(restored))

        def apply(session: Session) -> None:
            engine.delete_competitors(session, deleted)
            engine.restore_competitors(session, restored)

        session, changed = self._update(analysis_id, apply)
        return self._result(session, changed, affected_competitors=list(deleted) + list(restored))

    def update_products(
        self, analysis_id: str, deleted: Sequence[str] = (), restored: Sequence[str] = ()
    ) -> UpdateResult:
        logger.info("Updating products of %s: -%d +%d", analysis_id, len(deleted), len(restored))

        def apply(session: Session) -> None:
            engine.delete_products(session, deleted)
            engine.restore_products(session, restored)

        session, changed = self._update(analysis_id, apply)
        return self._result(session, changed, affected_competitors=list(deleted) + list(restored))

    def competitor_summary(self, analysis_id: str) -> pd.DataFrame:
        view = self.get_analysis(analysis_id)
        data = [
            {
                "asin": competitor.asin,
                "brand": competitor.brand,
                "strength_percentage": round(competitor.strength_percentage, 2),
                "strength_level": competitor.strength_level,
                "seller_country": competitor.seller_country,
                "rating": competitor.rating,
                "listing_age_months": competitor.listing_age_months,
                "price": competitor.price,
                "sales": competitor.sales,
                "revenue": competitor.revenue,
                "variations": competitor.variations,
                "fulfillment": competitor.fulfillment,
                "is_deleted": competitor.is_deleted,
            }
            for competitor in view.competitors
        ]
        return pd.DataFrame(data).sort_values("strength_percentage", ascending=False) if data else pd.DataFrame()

    def keyword_summary(self, analysis_id: str) -> pd.DataFrame:
        view = self.get_analysis(analysis_id)
        data = [
            {
                "phrase": keyword.phrase,
                "search_volume": keyword.search_volume,
                "relevance": keyword.relevance,
                "is_brand": keyword.is_brand,
                "brand_word": keyword.brand_word,
                "ranked_competitors": len(keyword.rankings),
                "is_deleted": keyword.is_deleted,
            }
            for keyword in view.keywords
        ]
        return pd.DataFrame(data)

    def product_summary(self, analysis_id: str) -> pd.DataFrame:
        view = self.get_analysis(analysis_id)
        data = [
            {
                "asin": product.asin,
                "brand": product.brand,
                "title": product.title,
                "keyword_count": product.keyword_count,
                "strength_percentage": round(product.strength_percentage, 2),
                "strength_level": product.strength_level,
                "variations": len(product.variation_asins),
                "is_deleted": product.is_deleted,
            }
            for product in view.products
        ]
        return pd.DataFrame(data)

    def root_keyword_summary(self, analysis_id: str) -> pd.DataFrame:
        view = self.get_analysis(analysis_id)
        data = [
            {
                "root_word": root.root_word,
                "total_search_volume": root.total_search_volume,
                "average_relevance": root.average_relevance,
                "brand_count": root.brand_count,
                "non_brand_count": root.non_brand_count,
                "total_count": root.total_count,
                "brand_percentage": root.brand_percentage,
                "related_phrases": ", ".join(root.related_phrases),
                "is_deleted": root.is_deleted,
            }
            for root in view.root_keywords
        ]
        return pd.DataFrame(data)

    def export_to_csv(self, analysis_id: str, table: str, destination: Path | str) -> Path:
        builders: Dict[str, Callable[[str], pd.DataFrame]] = {
            "competitors": self.competitor_summary,
            "keywords": self.keyword_summary,
            "products": self.product_summary,
            "roots": self.root_keyword_summary,
        }
        if table not in builders:
            raise ValueError(f"Unknown table {table!r}; expected one of {', '.join(EXPORT_TABLES)}")
        destination = Path(destination)
        ensure_directory(destination)
        builders[table](analysis_id).to_csv(destination, index=False)
        return destination

    def _update(
        self, analysis_id: str, apply: Callable[[Session], None]
    ) -> Tuple[Session, List[str]]:
        """Load, edit, recalculate and save a session under its writer lock.

        Returns the saved session and the phrases whose deleted flag changed.
        """

        with self._session_lock(analysis_id):
            session = self.repository.load(analysis_id)
            was_deleted = {keyword.phrase for keyword in session.keywords if keyword.is_deleted}
            apply(session)
            engine.recalculate(session)
            self.repository.save(session)
        changed = [
            keyword.phrase
            for keyword in session.keywords
            if keyword.is_deleted != (keyword.phrase in was_deleted)
        ]
        logger.info(
            "Recalculated %s: market SV %d, %d keywords changed",
            analysis_id,
            session.calculations.total_market_sv,
            len(changed),
        )
        return session, changed

    @contextmanager
    def _session_lock(self, analysis_id: str) -> Iterator[None]:
        # entries vanish once no writer holds a reference to the lock
        with self._locks_guard:
            lock = self._locks.get(analysis_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[analysis_id] = lock
        with lock:
            yield

    @staticmethod
    def _result(
        session: Session, affected_keywords: List[str], affected_competitors: List[str]
    ) -> UpdateResult:
        return UpdateResult(
            analysis_id=session.id,
            recalculated=True,
            new_market_sv=session.calculations.total_market_sv,
            affected_competitors=affected_competitors,
            affected_keywords=affected_keywords,
        )
