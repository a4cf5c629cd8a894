"""Pytest configuration for hookloader tests."""

import pytest
from hookloader.config import LoaderConfig
from hookloader.fetchers import MemoryFetcher
from hookloader.loader import Loader


@pytest.fixture
def fetcher():
    """Empty in-memory fetcher; tests add sources by address."""
    return MemoryFetcher()


@pytest.fixture
def make_loader(fetcher):
    """Build a Loader over the shared in-memory fetcher.

    Accepts either a LoaderConfig or raw config keyword arguments.
    """

    def _make(config: LoaderConfig | None = None, **raw):
        if config is None:
            config = LoaderConfig.model_validate(raw)
        return Loader(config=config, fetcher=fetcher)

    return _make


@pytest.fixture
def loader(make_loader):
    """Loader with the default configuration."""
    return make_loader()
