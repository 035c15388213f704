"""Data models for niche rows, derived entities and analysis sessions."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set


@dataclass
class KeywordRow:
    phrase: str
    search_volume: int = 0
    relevance: float = 0.0  # advisory value from the CSV, never used for metrics
    is_brand: bool = False
    brand_word: Optional[str] = None
    rankings: Dict[str, int] = field(default_factory=dict)


@dataclass
class BusinessRow:
    asin: str
    brand: str = ""
    image_url: str = ""
    seller_country: str = ""
    rating: float = 0.0
    creation_date: Optional[datetime] = None
    price: Optional[float] = None
    sales: float = 0.0
    revenue: float = 0.0
    revenue_text: str = ""
    category: str = ""
    fulfillment: str = ""


@dataclass
class ProductRow:
    asin: str
    brand: str = ""
    image_url: str = ""
    image_url_sample: str = ""
    image_count: int = 0
    title: str = ""
    features: List[str] = field(default_factory=list)
    variation_asins: List[str] = field(default_factory=list)


@dataclass
class Keyword:
    phrase: str
    search_volume: int
    is_brand: bool = False
    brand_word: Optional[str] = None
    relevance: int = 0
    rankings: Dict[str, int] = field(default_factory=dict)
    is_deleted: bool = False


@dataclass
class Competitor:
    asin: str
    brand: str = "Unknown"
    image_url: str = ""
    seller_country: str = ""
    rating: float = 0.0
    listing_age_months: int = 0
    price: Optional[float] = None
    sales: float = 0.0
    revenue: float = 0.0
    category: str = ""
    fulfillment: str = ""
    variations: int = 1
    strength_percentage: float = 0.0
    strength_level: str = "Debole"
    is_deleted: bool = False


@dataclass
class Product:
    asin: str
    brand: str = "Unknown"
    image_url: str = ""
    image_url_sample: str = ""
    image_count: int = 0
    title: str = ""
    features: List[str] = field(default_factory=list)
    variation_asins: List[str] = field(default_factory=list)
    keyword_count: int = 0
    matching_keywords: List[str] = field(default_factory=list)
    strength_percentage: float = 0.0
    strength_level: str = "Debole"
    is_deleted: bool = False


@dataclass
class RootKeyword:
    root_word: str
    total_search_volume: int = 0
    average_relevance: int = 0
    brand_count: int = 0
    non_brand_count: int = 0
    total_count: int = 0
    brand_percentage: int = 0
    related_phrases: List[str] = field(default_factory=list)
    is_deleted: bool = False


@dataclass
class CompetitorMetrics:
    asin: str
    strength_percentage: float
    strength_level: str
    top30_search_volume: int


@dataclass
class StrengthSummary:
    molto_forte: int = 0
    forte: int = 0
    medio: int = 0
    debole: int = 0

    def increment(self, level: str) -> None:
        attribute = level.lower().replace(" ", "_")
        setattr(self, attribute, getattr(self, attribute) + 1)


@dataclass
class Calculations:
    total_market_sv: int = 0
    brand_sv: int = 0
    strength_summary: StrengthSummary = field(default_factory=StrengthSummary)
    competitor_metrics: Dict[str, CompetitorMetrics] = field(default_factory=dict)


@dataclass
class Session:
    """One analysis: original rows, derived entities, deletions and metrics."""

    id: str
    created_at: datetime
    keyword_rows: List[KeywordRow] = field(default_factory=list)
    business_rows: List[BusinessRow] = field(default_factory=list)
    product_rows: List[ProductRow] = field(default_factory=list)
    keywords: List[Keyword] = field(default_factory=list)
    competitors: List[Competitor] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    root_keywords: List[RootKeyword] = field(default_factory=list)
    deleted_keywords: Set[str] = field(default_factory=set)
    deleted_root_keywords: Set[str] = field(default_factory=set)
    deleted_competitors: Set[str] = field(default_factory=set)
    deleted_products: Set[str] = field(default_factory=set)
    calculations: Calculations = field(default_factory=Calculations)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        for row in data["business_rows"]:
            if row["creation_date"] is not None:
                row["creation_date"] = row["creation_date"].isoformat()
        for name in ("deleted_keywords", "deleted_root_keywords", "deleted_competitors", "deleted_products"):
            data[name] = sorted(data[name])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        calculations = data.get("calculations") or {}
        business_rows = []
        for row in data.get("business_rows", []):
            row = dict(row)
            if row.get("creation_date"):
                row["creation_date"] = datetime.fromisoformat(row["creation_date"])
            business_rows.append(BusinessRow(**row))
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            keyword_rows=[KeywordRow(**row) for row in data.get("keyword_rows", [])],
            business_rows=business_rows,
            product_rows=[ProductRow(**row) for row in data.get("product_rows", [])],
            keywords=[Keyword(**item) for item in data.get("keywords", [])],
            competitors=[Competitor(**item) for item in data.get("competitors", [])],
            products=[Product(**item) for item in data.get("products", [])],
            root_keywords=[RootKeyword(**item) for item in data.get("root_keywords", [])],
            deleted_keywords=set(data.get("deleted_keywords", [])),
            deleted_root_keywords=set(data.get("deleted_root_keywords", [])),
            deleted_competitors=set(data.get("deleted_competitors", [])),
            deleted_products=set(data.get("deleted_products", [])),
            calculations=Calculations(
                total_market_sv=calculations.get("total_market_sv", 0),
                brand_sv=calculations.get("brand_sv", 0),
                strength_summary=StrengthSummary(**(calculations.get("strength_summary") or {})),
                competitor_metrics={
                    asin: CompetitorMetrics(**metrics)
                    for asin, metrics in (calculations.get("competitor_metrics") or {}).items()
                },
            ),
        )


@dataclass
class MarketSummary:
    total_market_sv: int
    brand_sv: int
    unique_brands: int
    total_keywords: int
    deleted_keywords: int
    total_revenue: float


@dataclass
class AnalysisView:
    """Read-only projection of a session handed to callers."""

    analysis_id: str
    market_summary: MarketSummary
    competitors: List[Competitor]
    keywords: List[Keyword]
    root_keywords: List[RootKeyword]
    products: List[Product]
    strength_summary: StrengthSummary
    deleted_root_words: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
