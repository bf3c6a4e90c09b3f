"""Product and user persistence: Postgres (when configured) or file-based fallback."""

from __future__ import annotations

import logging

from productkit.config import Settings
from productkit.repositories.files import (
    FileProductRepository,
    FileUserRepository,
    InMemoryProductRepository,
    InMemoryUserRepository,
    ProductRepository,
    UserRepository,
)
from productkit.repositories.postgres import PostgresProductRepository, PostgresUserRepository

logger = logging.getLogger(__name__)


def get_product_repository(settings: Settings) -> ProductRepository:
    if settings.pk_database_url:
        logger.info("Using Postgres product repository")
        return PostgresProductRepository(settings.pk_database_url)
    logger.info("Using file-based product repository (%s)", settings.products_dir)
    return FileProductRepository(settings.products_dir)


def get_user_repository(settings: Settings) -> UserRepository:
    if settings.pk_database_url:
        return PostgresUserRepository(settings.pk_database_url)
    return FileUserRepository(settings.users_dir)


__all__ = [
    "FileProductRepository",
    "FileUserRepository",
    "InMemoryProductRepository",
    "InMemoryUserRepository",
    "PostgresProductRepository",
    "PostgresUserRepository",
    "ProductRepository",
    "UserRepository",
    "get_product_repository",
    "get_user_repository",
]
