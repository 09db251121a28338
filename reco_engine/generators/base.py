"""Base generator class for synthetic reconciliation data."""

from __future__ import annotations

import random
from abc import ABC

from faker import Faker


class BaseGenerator(ABC):
    """Base class for all data generators.

    Provides common initialization: Faker instance creation and
    seed-based reproducibility.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale (default ``fr_FR``).
    """

    def __init__(self, seed: int | None = None, locale: str = "fr_FR") -> None:
        self.fake = Faker(locale)
        self.random = random.Random(seed)
        if seed is not None:
            self.fake.seed_instance(seed)

    def hex_digits(self, length: int) -> str:
        return "".join(self.random.choice("0123456789ABCDEF") for _ in range(length))

    def digits(self, length: int) -> str:
        return "".join(self.random.choice("0123456789") for _ in range(length))
