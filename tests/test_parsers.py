"""Tests for the CSV input adapter."""

import io
from datetime import datetime

import pytest

from niche_analyzer.parsers import (
    CsvFormatError,
    parse_business_rows,
    parse_date,
    parse_european_number,
    parse_keyword_rows,
    parse_locale_number,
    parse_product_rows,
)

KEYWORD_CSV = """Keyword Phrase,Search Volume,Rilevanza,Is_Brand,Brand_Word,B0AAA,B0BBB
dog leash,"1,200",55,,,3,-
acme leash,300,,,acme,,12
big dog collar,200,,TRUE,,45,
,500,,,,1,1
zero volume,0,,,,1,
"""

BUSINESS_CSV = """ASIN,Brand,Image URL,Seller Country/Region,Ratings,Creation Date,Price €,ASIN Sales,ASIN Revenue,Category,Fulfillment
B0AAA,Acme,http://img/a,IT,"4,5",2023-05-10,"19,99",1.487,"€24.779,36",Pets,FBA
B0BBB,,,CN,4.1,not a date,,320,"$1,234.56",Pets,FBM
,Ghost,,,,,,,,,
"""

PRODUCT_CSV = """ASIN,Marca,Immagine,Immagine campione,Conteggio delle immagini,Titolo,Descrizione & Funzionalità: Funzione 1,Descrizione & Funzionalità: Funzione 2,ASIN di variazione
B0AAA,Acme,http://img/a,http://img/a-s,7,Acme leash,Strong,Soft,"B0AAA1, B0AAA2"
B0CCC,Cat Co,,,x,,,,
"""


class TestParseKeywordRows:
    """Keyword ranking export parsing."""

    def test_rows(self):
        rows = parse_keyword_rows(io.StringIO(KEYWORD_CSV))

        assert [row.phrase for row in rows] == ["dog leash", "acme leash", "big dog collar"]
        first = rows[0]
        assert first.search_volume == 1200
        assert first.relevance == 55.0
        assert first.rankings == {"B0AAA": 3}
        assert not first.is_brand

    def test_brand_detection(self):
        rows = parse_keyword_rows(io.StringIO(KEYWORD_CSV))

        assert rows[1].is_brand
        assert rows[1].brand_word == "acme"
        assert rows[2].is_brand
        assert rows[2].brand_word is None

    def test_missing_phrase_column(self):
        with pytest.raises(CsvFormatError):
            parse_keyword_rows(io.StringIO("Search Volume\n10\n"))


class TestParseBusinessRows:
    """Business metrics export parsing."""

    def test_rows(self):
        rows = parse_business_rows(io.StringIO(BUSINESS_CSV))

        assert [row.asin for row in rows] == ["B0AAA", "B0BBB"]
        acme = rows[0]
        assert acme.rating == pytest.approx(4.5)
        assert acme.sales == 1487
        assert acme.price == pytest.approx(19.99)
        assert acme.revenue == pytest.approx(24779.36)
        assert acme.revenue_text == "€24.779,36"
        assert acme.creation_date == datetime(2023, 5, 10)
        assert acme.fulfillment == "FBA"

    def test_unparseable_values(self):
        rows = parse_business_rows(io.StringIO(BUSINESS_CSV))

        bolt = rows[1]
        assert bolt.creation_date is None
        assert bolt.price is None
        assert bolt.revenue == pytest.approx(1234.56)


class TestParseProductRows:
    """Catalog export parsing."""

    def test_rows(self):
        rows = parse_product_rows(io.StringIO(PRODUCT_CSV))

        acme, cat = rows
        assert acme.title == "Acme leash"
        assert acme.image_count == 7
        assert acme.features == ["Strong", "Soft", "", "", ""]
        assert acme.variation_asins == ["B0AAA1", "B0AAA2"]
        assert cat.image_count == 0
        assert cat.variation_asins == []


class TestNumberParsing:
    """Locale-aware number parsing."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1.234,56", 1234.56),
            ("1,234.56", 1234.56),
            ("€ 1234", 1234.0),
            ("123,45", 123.45),
            ("1,234", 1234.0),
            ("1,234,567", 1234567.0),
            ("", 0.0),
            ("n/a", 0.0),
            (None, 0.0),
            (12, 12.0),
        ],
    )
    def test_locale_number(self, text, expected):
        assert parse_locale_number(text) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1.487", 1487.0),
            ("24.779,36", 24779.36),
            ("1.234.567", 1234567.0),
            ("4.5", 4.5),
            ("", 0.0),
        ],
    )
    def test_european_number(self, text, expected):
        assert parse_european_number(text) == pytest.approx(expected)

    def test_parse_date(self):
        assert parse_date("2022-01-31") == datetime(2022, 1, 31)
        assert parse_date("") is None
        assert parse_date("garbage") is None
