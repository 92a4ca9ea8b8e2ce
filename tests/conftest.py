"""
Shared pytest fixtures.

Every test that touches the database gets a clean temporary DATA_DIR via the
`tmp_data_dir` fixture so tests are fully isolated from each other and from
the real frame_shop.db.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from models import DetectedItem, Product  # noqa: E402


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """
    Redirect DATA_DIR to a fresh tmp directory for every test.
    This gives each test a clean SQLite file and prevents cross-test pollution.
    """
    data = tmp_path / "data"
    data.mkdir()
    monkeypatch.setenv("DATA_DIR", str(data))

    # Patch the module-level DB_PATH that was already computed at import time
    import database
    monkeypatch.setattr(database, "DB_PATH", str(data / "frame_shop.db"))
    monkeypatch.setattr(database, "_DATA_DIR", data)

    # Also reset the internal lock so tests don't share state
    import asyncio
    monkeypatch.setattr(database, "_lock", asyncio.Lock())

    yield data


@pytest.fixture(autouse=True)
def no_amplitude(monkeypatch):
    """Never send real analytics from tests."""
    import config
    monkeypatch.setattr(config, "AMPLITUDE_API_KEY", None)


@pytest_asyncio.fixture
async def db(tmp_data_dir):
    from database import Database
    database = Database()
    await database.init()
    return database


def make_product(
    pid: str,
    url: Optional[str] = None,
    image: Optional[str] = "https://img.example/p.jpg",
    price: Optional[float] = 19.99,
    vendor: Optional[str] = "Acme",
    marketplace: str = "shopify",
) -> Product:
    return Product(
        id=pid,
        title=f"Product {pid}",
        vendor=vendor,
        price=price,
        image_url=image,
        canonical_url=url if url is not None else f"https://shop.example/products/{pid}",
        marketplace=marketplace,
    )


def make_item(label: str = "blue sneakers", confidence: float = 0.9,
              category: Optional[str] = None) -> DetectedItem:
    return DetectedItem(label=label, confidence=confidence, category=category)
