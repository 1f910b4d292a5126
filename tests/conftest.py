"""Root conftest — shared fixtures for all tests."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env at the root, without overriding the process environment.
load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)


@pytest.fixture
def user_id() -> str:
    """Supabase auth user id."""
    return "9b2f6a0e-4c1d-4f3e-8a57-1d2c3b4a5e6f"


@pytest.fixture
def ad_id() -> str:
    return "4e8d2c1a-7b6f-4a3e-9d5c-0f1e2d3c4b5a"


@pytest.fixture
def product_info() -> dict:
    """Typical seller input for listing-content features."""
    return {
        "name": "iPhone 13 Pro",
        "brand": "Apple",
        "condition": "used",
        "price": 650,
        "location": "Bratislava",
        "features": ["128 GB", "Sierra Blue", "batéria 89 %"],
    }
