"""Calculation engine: entity join, root keywords, soft deletes and metrics.

Every mutating helper only edits the four deletion sets of a session. The
``is_deleted`` flags on entities are a cache of set membership and are
rewritten by :func:`recalculate` (and by the root keyword refresh), so the
sets stay the single source of truth.
"""
from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .models import (
    AnalysisView,
    BusinessRow,
    Calculations,
    Competitor,
    CompetitorMetrics,
    Keyword,
    KeywordRow,
    MarketSummary,
    Product,
    ProductRow,
    RootKeyword,
    Session,
)
from .utils import new_session_id, now_utc

logger = logging.getLogger(__name__)

TOP_RANK_CUTOFF = 30
MIN_ROOT_LENGTH = 3
STOP_WORDS = frozenset(
    {
        "the", "and", "for", "with", "are", "you", "all", "any", "can",
        "had", "her", "was", "one", "our", "out", "day", "get", "has",
        "him", "his", "how", "its", "may", "new", "now", "old", "see",
        "two", "way", "who", "boy", "did", "men", "run", "she", "try",
        "use",
    }
)


def strength_level(percentage: float) -> str:
    if percentage >= 80:
        return "Molto Forte"
    if percentage >= 65:
        return "Forte"
    if percentage >= 30:
        return "Medio"
    return "Debole"


def listing_age_months(creation_date: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Whole months (30-day blocks, rounded up) between creation and ``now``."""

    if creation_date is None:
        return 0
    now = now or now_utc()
    days = abs((now - creation_date).total_seconds()) / 86400
    return math.ceil(days / 30)


def variation_count(variation_asins: Sequence[str]) -> int:
    return len(variation_asins) if variation_asins else 1


def is_top_ranked(position: Optional[int]) -> bool:
    return position is not None and 1 <= position <= TOP_RANK_CUTOFF


def keyword_relevance(is_brand: bool, rankings: Dict[str, int]) -> int:
    """Share of ranked competitors placing in the top 30; brand keywords score 0."""

    if is_brand or not rankings:
        return 0
    top = sum(1 for position in rankings.values() if is_top_ranked(position))
    return _round_half_up(100 * top / len(rankings))


def extract_root_words(phrase: str) -> List[str]:
    return [
        word
        for word in phrase.lower().split()
        if len(word) >= MIN_ROOT_LENGTH and word not in STOP_WORDS
    ]


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


def initialize(
    keyword_rows: Iterable[KeywordRow],
    business_rows: Iterable[BusinessRow],
    product_rows: Iterable[ProductRow],
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Session:
    """Join the three row sets into a new session and run the first pass."""

    now = now or now_utc()
    keyword_rows = [row for row in keyword_rows if row.phrase and row.phrase.strip()]
    business_rows = [row for row in business_rows if row.asin and row.asin.strip()]
    product_rows = [row for row in product_rows if row.asin and row.asin.strip()]

    products_by_asin: Dict[str, ProductRow] = {row.asin: row for row in product_rows}

    competitors: Dict[str, Competitor] = {}
    for business in business_rows:
        product = products_by_asin.get(business.asin)
        competitors[business.asin] = Competitor(
            asin=business.asin,
            brand=business.brand or (product.brand if product else "") or "Unknown",
            image_url=business.image_url or (product.image_url if product else "") or "",
            seller_country=business.seller_country,
            rating=business.rating,
            listing_age_months=listing_age_months(business.creation_date, now),
            price=business.price,
            sales=business.sales,
            revenue=business.revenue,
            category=business.category,
            fulfillment=business.fulfillment,
            variations=variation_count(product.variation_asins if product else []),
        )

    keywords: Dict[str, Keyword] = {}
    for row in keyword_rows:
        if row.phrase in keywords:
            logger.warning("Duplicate keyword phrase %r ignored", row.phrase)
            continue
        is_brand = bool(row.is_brand) or bool(row.brand_word and row.brand_word.strip())
        keywords[row.phrase] = Keyword(
            phrase=row.phrase,
            search_volume=max(int(row.search_volume or 0), 0),
            is_brand=is_brand,
            brand_word=row.brand_word,
            relevance=keyword_relevance(is_brand, row.rankings),
            rankings=dict(row.rankings),
        )

    products = [
        Product(
            asin=row.asin,
            brand=row.brand or "Unknown",
            image_url=row.image_url or "",
            image_url_sample=row.image_url_sample or "",
            image_count=row.image_count or 0,
            title=row.title or f"Product {row.asin}",
            features=list(row.features[:5]),
            variation_asins=list(row.variation_asins),
        )
        for row in products_by_asin.values()
    ]

    session = Session(
        id=session_id or new_session_id(),
        created_at=now,
        keyword_rows=keyword_rows,
        business_rows=business_rows,
        product_rows=product_rows,
        keywords=list(keywords.values()),
        competitors=list(competitors.values()),
        products=products,
    )
    logger.info(
        "Initialized session %s: %d keywords, %d competitors, %d products",
        session.id,
        len(session.keywords),
        len(session.competitors),
        len(session.products),
    )
    recalculate(session)
    return session


# ---------------------------------------------------------------------------
# Root keywords
# ---------------------------------------------------------------------------


@dataclass
class _RootAccumulator:
    total_search_volume: int = 0
    relevances: List[int] = field(default_factory=list)
    brand_count: int = 0
    non_brand_count: int = 0
    related_phrases: List[str] = field(default_factory=list)


def calculate_root_keywords(session: Session) -> List[RootKeyword]:
    """Aggregate every significant word of the active keywords."""

    roots: Dict[str, _RootAccumulator] = {}
    for keyword in session.keywords:
        if keyword.phrase in session.deleted_keywords:
            continue
        for word in extract_root_words(keyword.phrase):
            accumulator = roots.setdefault(word, _RootAccumulator())
            accumulator.total_search_volume += keyword.search_volume
            accumulator.relevances.append(keyword.relevance)
            if keyword.is_brand:
                accumulator.brand_count += 1
            else:
                accumulator.non_brand_count += 1
            if keyword.phrase not in accumulator.related_phrases:
                accumulator.related_phrases.append(keyword.phrase)

    root_keywords: List[RootKeyword] = []
    for word, data in roots.items():
        total_count = data.brand_count + data.non_brand_count
        root_keywords.append(
            RootKeyword(
                root_word=word,
                total_search_volume=data.total_search_volume,
                average_relevance=_round_half_up(_mean(data.relevances)),
                brand_count=data.brand_count,
                non_brand_count=data.non_brand_count,
                total_count=total_count,
                brand_percentage=_round_half_up(_ratio(data.brand_count, total_count) * 100),
                related_phrases=data.related_phrases,
            )
        )
    root_keywords.sort(key=lambda root: root.total_search_volume, reverse=True)
    return root_keywords


def refresh_root_keywords(session: Session) -> None:
    session.root_keywords = calculate_root_keywords(session)
    for root in session.root_keywords:
        root.is_deleted = root.root_word in session.deleted_root_keywords


def delete_root_keywords(session: Session, root_words: Iterable[str]) -> None:
    """Delete each root word and every keyword whose phrase contains it."""

    for root_word in _normalize_roots(root_words):
        session.deleted_root_keywords.add(root_word)
        for keyword in session.keywords:
            if root_word in extract_root_words(keyword.phrase):
                session.deleted_keywords.add(keyword.phrase)
    refresh_root_keywords(session)


def restore_root_keywords(session: Session, root_words: Iterable[str]) -> None:
    """Restore root words; a keyword stays deleted while any of its roots is."""

    for root_word in _normalize_roots(root_words):
        session.deleted_root_keywords.discard(root_word)
        for keyword in session.keywords:
            words = extract_root_words(keyword.phrase)
            if root_word not in words:
                continue
            if any(word != root_word and word in session.deleted_root_keywords for word in words):
                continue
            session.deleted_keywords.discard(keyword.phrase)
    refresh_root_keywords(session)


# ---------------------------------------------------------------------------
# Entity soft deletes
# ---------------------------------------------------------------------------


def delete_keywords(session: Session, phrases: Iterable[str]) -> None:
    session.deleted_keywords.update(phrases)


def restore_keywords(session: Session, phrases: Iterable[str]) -> None:
    session.deleted_keywords.difference_update(phrases)


def delete_competitors(session: Session, asins: Iterable[str]) -> None:
    session.deleted_competitors.update(asins)


def restore_competitors(session: Session, asins: Iterable[str]) -> None:
    session.deleted_competitors.difference_update(asins)


def delete_products(session: Session, asins: Iterable[str]) -> None:
    """Delete products together with the competitor sharing each ASIN."""

    asins = list(asins)
    session.deleted_products.update(asins)
    session.deleted_competitors.update(asins)


def restore_products(session: Session, asins: Iterable[str]) -> None:
    asins = list(asins)
    session.deleted_products.difference_update(asins)
    session.deleted_competitors.difference_update(asins)


# ---------------------------------------------------------------------------
# Recalculation
# ---------------------------------------------------------------------------


def recalculate(session: Session) -> Calculations:
    """Rederive every metric of ``session`` from its entities and deletion sets."""

    for keyword in session.keywords:
        keyword.is_deleted = keyword.phrase in session.deleted_keywords
    for competitor in session.competitors:
        competitor.is_deleted = competitor.asin in session.deleted_competitors
    for product in session.products:
        product.is_deleted = product.asin in session.deleted_products
    refresh_root_keywords(session)

    active_keywords = [keyword for keyword in session.keywords if not keyword.is_deleted]
    total_market_sv = sum(keyword.search_volume for keyword in active_keywords)
    brand_sv = sum(keyword.search_volume for keyword in active_keywords if keyword.is_brand)

    calculations = Calculations(total_market_sv=total_market_sv, brand_sv=brand_sv)
    for competitor in session.competitors:
        if competitor.is_deleted:
            continue
        top30_sv = _top_ranked_volume(active_keywords, competitor.asin)
        competitor.strength_percentage = _ratio(top30_sv, total_market_sv) * 100
        competitor.strength_level = strength_level(competitor.strength_percentage)
        calculations.competitor_metrics[competitor.asin] = CompetitorMetrics(
            asin=competitor.asin,
            strength_percentage=competitor.strength_percentage,
            strength_level=competitor.strength_level,
            top30_search_volume=top30_sv,
        )
        calculations.strength_summary.increment(competitor.strength_level)

    # Deleted products are scored too so a restore shows current figures.
    for product in session.products:
        matching = [kw for kw in active_keywords if is_top_ranked(kw.rankings.get(product.asin))]
        product.matching_keywords = [kw.phrase for kw in matching]
        product.keyword_count = len(matching)
        product_sv = sum(kw.search_volume for kw in matching)
        product.strength_percentage = _ratio(product_sv, total_market_sv) * 100
        product.strength_level = strength_level(product.strength_percentage)

    session.calculations = calculations
    logger.debug(
        "Recalculated session %s: market SV %d, brand SV %d, %d active keywords",
        session.id,
        total_market_sv,
        brand_sv,
        len(active_keywords),
    )
    return calculations


def build_view(session: Session) -> AnalysisView:
    """Project the session into the read-only view consumed by callers."""

    active_competitors = [c for c in session.competitors if c.asin not in session.deleted_competitors]
    active_keywords = [k for k in session.keywords if k.phrase not in session.deleted_keywords]
    summary = MarketSummary(
        total_market_sv=session.calculations.total_market_sv,
        brand_sv=session.calculations.brand_sv,
        unique_brands=len({competitor.brand for competitor in active_competitors}),
        total_keywords=len(active_keywords),
        deleted_keywords=len(session.keywords) - len(active_keywords),
        total_revenue=sum(competitor.revenue or 0.0 for competitor in active_competitors),
    )
    return AnalysisView(
        analysis_id=session.id,
        market_summary=summary,
        competitors=copy.deepcopy(session.competitors),
        keywords=copy.deepcopy(session.keywords),
        root_keywords=copy.deepcopy(session.root_keywords),
        products=copy.deepcopy(session.products),
        strength_summary=copy.deepcopy(session.calculations.strength_summary),
        deleted_root_words=sorted(session.deleted_root_keywords),
    )


def _top_ranked_volume(keywords: Iterable[Keyword], asin: str) -> int:
    return sum(keyword.search_volume for keyword in keywords if is_top_ranked(keyword.rankings.get(asin)))


def _normalize_roots(root_words: Iterable[str]) -> List[str]:
    return [word.strip().lower() for word in root_words if word and word.strip()]


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
