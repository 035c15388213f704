from datetime import datetime

import pytest

from niche_analyzer.models import BusinessRow, KeywordRow, ProductRow

NOW = datetime(2024, 6, 1)


@pytest.fixture
def keyword_rows():
    return [
        KeywordRow(phrase="kw1", search_volume=1000, rankings={"A": 5}),
        KeywordRow(phrase="kw2", search_volume=500, rankings={"A": 40, "B": 2}),
        KeywordRow(phrase="kw3 brand", search_volume=200, is_brand=True, rankings={"B": 1}),
    ]


@pytest.fixture
def business_rows():
    return [
        BusinessRow(asin="A", brand="Acme", revenue=1234.56, creation_date=datetime(2024, 1, 1)),
        BusinessRow(asin="B", brand="", revenue=100.0),
    ]


@pytest.fixture
def product_rows():
    return [
        ProductRow(asin="A", brand="Acme", title="Leash A", variation_asins=["A1", "A2"]),
        ProductRow(asin="B", brand="Bolt"),
        ProductRow(asin="C", brand="Cat Co", title="Catalog only"),
    ]


@pytest.fixture
def leash_rows():
    return [
        KeywordRow(phrase="red dog leash", search_volume=300, rankings={"A": 3}),
        KeywordRow(phrase="red cat leash", search_volume=200, rankings={"A": 12, "B": 50}),
        KeywordRow(phrase="blue leash for dog", search_volume=100, rankings={"B": 4}),
    ]
