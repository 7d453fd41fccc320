"""Shared pytest fixtures for storefront tests."""

import pytest

from cart import CartManager
from database import MemoryStore
from orders import OrderRecorder, StampSource


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cart(store):
    return CartManager(store)


@pytest.fixture
def recorder(cart, store):
    return OrderRecorder(cart, store, stamps=StampSource())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def headphones():
    return {
        "id": "p1",
        "name": "Aurora Headphones",
        "price": 2499,
        "image": "/headphones.svg",
        "description": "Comfortable over-ear wireless headphones with noise cancellation.",
    }


@pytest.fixture
def speaker():
    return {
        "id": "p3",
        "name": "Comet Portable Speaker",
        "price": 1299,
        "image": "/speaker.svg",
        "description": "Rugged, waterproof bluetooth speaker with punchy bass.",
    }


@pytest.fixture
def valid_address():
    return {
        "name": "Asha Raman",
        "doorNo": "12B",
        "street": "Gandhi Street",
        "area": "T. Nagar",
        "district": "Chennai",
        "pincode": "600017",
        "mobile": "9876543210",
        "landmark": "Near the bus stand",
    }
