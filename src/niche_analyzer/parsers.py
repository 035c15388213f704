"""Parsers that convert the three niche CSV exports into normalized rows."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Union

import pandas as pd

from .models import BusinessRow, KeywordRow, ProductRow

logger = logging.getLogger(__name__)

CsvSource = Union[str, Path, IO[str]]

RELEVANCE_COLUMNS = ("Rilevanza", "Relevance", "relevance")
FEATURE_COLUMNS = tuple(f"Descrizione & Funzionalità: Funzione {i}" for i in range(1, 6))
_CURRENCY_PATTERN = re.compile(r"[€$£¥\s]")


class CsvFormatError(ValueError):
    """Raised when an export lacks a column needed to identify its rows."""


def parse_keyword_rows(source: CsvSource) -> List[KeywordRow]:
    frame = _read_csv(source)
    _require_columns(frame, "Keyword Phrase", kind="keyword")
    ranking_columns = [column for column in frame.columns if column.startswith("B0")]

    rows: List[KeywordRow] = []
    for record in frame.to_dict(orient="records"):
        phrase = record.get("Keyword Phrase", "").strip()
        search_volume = _safe_int(parse_locale_number(record.get("Search Volume")))
        if not phrase or not search_volume or search_volume <= 0:
            continue

        rankings: Dict[str, int] = {}
        for column in ranking_columns:
            position = _safe_int(record.get(column))
            if position is not None:
                rankings[column] = position

        brand_word = (record.get("Brand_Word") or "").strip() or None
        rows.append(
            KeywordRow(
                phrase=phrase,
                search_volume=search_volume,
                relevance=_first_relevance(record),
                is_brand=_truthy(record.get("Is_Brand")) or brand_word is not None,
                brand_word=brand_word,
                rankings=rankings,
            )
        )
    logger.info("Parsed %d keyword rows (%d ranking columns)", len(rows), len(ranking_columns))
    return rows


def parse_business_rows(source: CsvSource) -> List[BusinessRow]:
    frame = _read_csv(source)
    _require_columns(frame, "ASIN", kind="business")

    rows: List[BusinessRow] = []
    for record in frame.to_dict(orient="records"):
        asin = record.get("ASIN", "").strip()
        if not asin:
            continue
        revenue_text = record.get("ASIN Revenue", "")
        price_text = record.get("Price €", "")
        rows.append(
            BusinessRow(
                asin=asin,
                brand=record.get("Brand", ""),
                image_url=record.get("Image URL", ""),
                seller_country=record.get("Seller Country/Region", ""),
                rating=parse_european_number(record.get("Ratings")),
                creation_date=parse_date(record.get("Creation Date")),
                price=parse_locale_number(price_text) if price_text.strip() else None,
                sales=parse_european_number(record.get("ASIN Sales")),
                revenue=parse_locale_number(revenue_text),
                revenue_text=revenue_text,
                category=record.get("Category", ""),
                fulfillment=record.get("Fulfillment", ""),
            )
        )
    logger.info("Parsed %d business rows", len(rows))
    return rows


def parse_product_rows(source: CsvSource) -> List[ProductRow]:
    frame = _read_csv(source)
    _require_columns(frame, "ASIN", kind="product")

    rows: List[ProductRow] = []
    for record in frame.to_dict(orient="records"):
        asin = record.get("ASIN", "").strip()
        if not asin:
            continue
        variations = record.get("ASIN di variazione", "")
        rows.append(
            ProductRow(
                asin=asin,
                brand=record.get("Marca", ""),
                image_url=record.get("Immagine", ""),
                image_url_sample=record.get("Immagine campione", ""),
                image_count=_safe_int(record.get("Conteggio delle immagini")) or 0,
                title=record.get("Titolo", ""),
                features=[record.get(column, "") for column in FEATURE_COLUMNS],
                variation_asins=[a.strip() for a in variations.split(",") if a.strip()] if variations else [],
            )
        )
    logger.info("Parsed %d product rows", len(rows))
    return rows


def parse_locale_number(value: Any) -> float:
    """Parse a number written as ``1.234,56``, ``1,234.56`` or ``€1234``.

    When both separators appear the last one is the decimal separator. A lone
    comma is decimal only when followed by at most two digits. Unparseable
    input yields ``0.0``.
    """

    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = _CURRENCY_PATTERN.sub("", str(value))
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".", 1)
        else:
            text = text.replace(",", "")
    elif "," in text:
        parts = text.split(",")
        if len(parts) == 2 and len(parts[1]) <= 2:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    return _safe_float(text) or 0.0


def parse_european_number(value: Any) -> float:
    """Parse Italian-formatted figures where ``1.487`` means 1487."""

    if value is None:
        return 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    if "," in text:
        integer_part, _, decimal_part = text.partition(",")
        return _safe_float(f"{integer_part.replace('.', '')}.{decimal_part}") or 0.0
    parts = text.split(".")
    if (len(parts) == 2 and len(parts[1]) > 2) or len(parts) > 2:
        return float(_safe_int(text.replace(".", "")) or 0)
    return _safe_float(text) or 0.0


def parse_date(value: Any) -> Optional[datetime]:
    if value is None or not str(value).strip():
        return None
    parsed = pd.to_datetime(str(value).strip(), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime().replace(tzinfo=None)


def _read_csv(source: CsvSource) -> pd.DataFrame:
    frame = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    frame.columns = [str(column).strip() for column in frame.columns]
    return frame


def _require_columns(frame: pd.DataFrame, *columns: str, kind: str) -> None:
    missing = [column for column in columns if column not in frame.columns]
    if missing:
        raise CsvFormatError(f"Missing {kind} columns: {', '.join(missing)}")


def _first_relevance(record: Dict[str, str]) -> float:
    for column in RELEVANCE_COLUMNS:
        value = record.get(column)
        if value not in (None, ""):
            return _safe_float(value) or 0.0
    return 0.0


def _truthy(value: Any) -> bool:
    return str(value or "").strip().lower() in ("true", "1")


def _safe_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _safe_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
