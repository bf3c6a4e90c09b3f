"""Product and user repositories: in-memory and file-based implementations."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Protocol

from productkit.schemas.models import Product, User

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.\-]+$")


class ProductRepository(Protocol):
    async def find_by_id(self, product_id: str) -> Product | None: ...
    async def replace(self, product: Product) -> Product: ...


class UserRepository(Protocol):
    async def find_by_id(self, user_id: str) -> User | None: ...
    async def replace(self, user: User) -> User: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------

class InMemoryProductRepository:
    """Dict-backed repository. Returns copies so callers cannot mutate stored state."""

    def __init__(self, products: list[Product] | None = None):
        self._products: dict[str, Product] = {p.id: p.model_copy(deep=True) for p in products or []}

    async def find_by_id(self, product_id: str) -> Product | None:
        product = self._products.get(product_id)
        return product.model_copy(deep=True) if product else None

    async def replace(self, product: Product) -> Product:
        self._products[product.id] = product.model_copy(deep=True)
        return product


class InMemoryUserRepository:
    def __init__(self, users: list[User] | None = None):
        self._users: dict[str, User] = {u.id: u.model_copy(deep=True) for u in users or []}

    async def find_by_id(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def replace(self, user: User) -> User:
        self._users[user.id] = user.model_copy(deep=True)
        return user


# ---------------------------------------------------------------------------
# File-based implementations (one JSON document per entity)
# ---------------------------------------------------------------------------

class _JsonDocumentDir:
    def __init__(self, directory: Path):
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def path(self, entity_id: str) -> Path:
        if not _SAFE_ID.match(entity_id):
            raise ValueError(f"Invalid id: {entity_id!r}")
        return self._dir / f"{entity_id}.json"

    def read(self, entity_id: str) -> dict | None:
        try:
            path = self.path(entity_id)
        except ValueError:
            return None
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def write(self, entity_id: str, data: dict) -> None:
        path = self.path(entity_id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)
        os.replace(tmp, path)


class FileProductRepository:
    """Persist products as JSON files under ``{data_dir}/products``."""

    def __init__(self, directory: Path):
        self._docs = _JsonDocumentDir(directory)

    async def find_by_id(self, product_id: str) -> Product | None:
        data = self._docs.read(product_id)
        return Product.model_validate(data) if data is not None else None

    async def replace(self, product: Product) -> Product:
        self._docs.write(product.id, product.model_dump(mode="json"))
        return product


class FileUserRepository:
    """Persist users as JSON files under ``{data_dir}/users``."""

    def __init__(self, directory: Path):
        self._docs = _JsonDocumentDir(directory)

    async def find_by_id(self, user_id: str) -> User | None:
        data = self._docs.read(user_id)
        return User.model_validate(data) if data is not None else None

    async def replace(self, user: User) -> User:
        self._docs.write(user.id, user.model_dump(mode="json"))
        return user
