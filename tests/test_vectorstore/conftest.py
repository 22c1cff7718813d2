"""Pytest fixtures for vectorstore tests."""

from typing import Any

import pytest

from finvec.vectorstore.base import VectorRecord
from finvec.vectorstore.config import VectorStoreConfig
from finvec.vectorstore.remote_store import VectorIndexTransport


class FakeTransport(VectorIndexTransport):
    """
    Transport that keeps vectors in a dict and answers queries itself.

    Records every call so tests can assert on the wire payloads.
    """

    def __init__(self, matches: list[dict[str, Any]] | None = None):
        self.upserts: list[list[dict[str, Any]]] = []
        self.queries: list[dict[str, Any]] = []
        self.created: list[int] = []
        self.closed = False
        self.matches = matches

    async def upsert(self, vectors):
        self.upserts.append(vectors)
        return f"mutation-{len(self.upserts)}"

    async def query(self, vector, top_k, filter_expression):
        self.queries.append(
            {"vector": vector, "top_k": top_k, "filter": filter_expression}
        )
        if self.matches is not None:
            return self.matches
        return []

    async def create_index(self, dimension):
        self.created.append(dimension)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def memory_config() -> VectorStoreConfig:
    """Config with no remote credentials and no .env lookup."""
    return VectorStoreConfig(_env_file=None)


@pytest.fixture
def remote_config() -> VectorStoreConfig:
    """Config with both remote credentials present."""
    return VectorStoreConfig(
        _env_file=None,
        cf_account_id="acct-123",
        cf_api_token="token-abc",
    )


@pytest.fixture
def transaction_records() -> list[VectorRecord]:
    """Three transactions with 3-dimensional embeddings."""
    return [
        VectorRecord(
            id="txn_rent",
            values=[1.0, 0.0, 0.0],
            metadata={
                "englishSummary": "Monthly rent transfer",
                "transactionType": "monthly",
                "category": "housing",
                "amount": 4200.0,
            },
        ),
        VectorRecord(
            id="txn_grocery",
            values=[0.8, 0.6, 0.0],
            metadata={
                "englishSummary": "Groceries at Rami Levy",
                "transactionType": "regular",
                "category": "food_beverage",
                "amount": 156.8,
            },
        ),
        VectorRecord(
            id="txn_fuel",
            values=[0.0, 1.0, 0.0],
            metadata={
                "englishSummary": "Fuel at Paz",
                "transactionType": "regular",
                "category": "fuel",
                "amount": 280.5,
            },
        ),
    ]
