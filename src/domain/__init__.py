"""Domain models and computations for the NFT tax ledger.

This package contains in-memory (Pydantic / dataclass) models describing ledger
events and the cost-basis, gain/loss and revenue computations replayed from
them. They are independent from persistence models so that business logic and
testing can evolve without DB coupling.
"""

__all__ = [
    "cost_basis",
    "errors",
    "gain_loss",
    "ledger",
    "money",
    "revenue",
    "settlement",
]
