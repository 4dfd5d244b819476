import pytest

from feedrank.services.recommendation.engine import RecommendationEngine
from feedrank.services.recommendation.weights import EngineConfig
from feedrank.services.repositories import InMemoryRepository
from tests.helpers import FakeCache, seed_data


@pytest.fixture
def memory_repo() -> InMemoryRepository:
    return InMemoryRepository(**seed_data())


@pytest.fixture
def repos(memory_repo):
    return memory_repo.as_repositories()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(provider_timeout_seconds=2.0)


@pytest.fixture
def engine(repos, cache, config) -> RecommendationEngine:
    return RecommendationEngine(repos, cache, config)
