"""
Dependency providers for the request handlers.

Each collaborator is built once, on first use, from the environment settings.
Tests replace them through app.dependency_overrides.
"""

from functools import lru_cache

from catalog import Catalog, default_catalog
from database import Database, create_database
from mailer import Mailer
from settings import Settings


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_db() -> Database:
    return create_database(get_settings())


@lru_cache
def get_catalog() -> Catalog:
    return default_catalog()


@lru_cache
def get_mailer() -> Mailer:
    return Mailer(get_settings())


@lru_cache
def get_google_verifier():
    # Imported here so auth can depend on this module
    from auth import GoogleTokenVerifier
    return GoogleTokenVerifier(get_settings().google_client_id)
