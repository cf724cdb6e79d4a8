"""Shared fixtures for calendar-crawler tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from calendar_crawler.config import (
    ConfigLocator,
    ConfigRepository,
    CrawlerConfig,
    StorageBackend,
    StorageConfig,
    SyncConfig,
)
from calendar_crawler.errors import StorageUnavailable
from calendar_crawler.infra import MemoryKeyValueStore
from calendar_crawler.models import CanonicalEvent, EventCategory

NEWS_URL = "https://pokemongo.com/es/news"

NEWS_HTML = """
<html>
  <body>
    <nav>
      <a href="/es/news">Noticias</a>
      <a href="/es/post/privacy">Política de privacidad de la web</a>
    </nav>
    <div class="grid">
      <div class="card">
        <a href="/es/news/dia-de-la-comunidad-julio">
          <img src="/img/community.jpg">
          Día de la Comunidad de julio 29 jul 2025
        </a>
        <p>Consigue Pokémon con ataques exclusivos.</p>
      </div>
      <div class="card">
        <a href="/es/post/incursiones-legendarias"><span>Ver</span></a>
        <span>Incursiones legendarias de Zapdos 3 de agosto de 2025</span>
        <img data-src="https://cdn.example.com/zapdos.png">
      </div>
      <div class="card">
        <a href="/es/news/sin-fecha">Novedades generales de la temporada</a>
      </div>
      <div class="card">
        <a href="/es/news/placeholder">[ ]</a>
      </div>
      <div class="card">
        <a href="https://pokemongo.com/es/news/dia-de-la-comunidad-julio">Día de la Comunidad de julio 29 jul 2025</a>
      </div>
    </div>
  </body>
</html>
"""


class FakeClock:
    """Mutable epoch-seconds clock."""

    def __init__(self, start: float = 1_750_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenStore:
    """Key-value backend whose every call fails as if the disk were gone."""

    def get_item(self, key):
        raise StorageUnavailable("disk gone")

    def set_item(self, key, value):
        raise StorageUnavailable("disk gone")

    def remove_item(self, key):
        raise StorageUnavailable("disk gone")

    def __len__(self):
        raise StorageUnavailable("disk gone")

    def key(self, index):
        raise StorageUnavailable("disk gone")


@pytest.fixture(autouse=True, scope="session")
def _crawler_home(tmp_path_factory: pytest.TempPathFactory) -> Iterable[Path]:
    home = tmp_path_factory.mktemp("crawler_home")
    with pytest.MonkeyPatch.context() as patcher:
        patcher.setenv("CALENDAR_CRAWLER_HOME", str(home))
        yield home


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def broken_store() -> BrokenStore:
    return BrokenStore()


@pytest.fixture
def news_html() -> str:
    return NEWS_HTML


@pytest.fixture
def make_event() -> Callable[..., CanonicalEvent]:
    def _builder(**overrides: Any) -> CanonicalEvent:
        start = overrides.pop("start_date", datetime(2025, 7, 29, tzinfo=timezone.utc))
        base: dict[str, Any] = {
            "id": "evt-1",
            "title": "Día de la Comunidad de julio",
            "description": "Consigue Pokémon con ataques exclusivos.",
            "start_date": start,
            "end_date": start,
            "source_url": f"{NEWS_URL}/dia-de-la-comunidad",
            "category": EventCategory.COMMUNITY,
            "scraped_at": datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc),
        }
        base.update(overrides)
        return CanonicalEvent(**base)

    return _builder


@pytest.fixture
def sample_config() -> CrawlerConfig:
    return CrawlerConfig(
        storage=StorageConfig(backend=StorageBackend.MEMORY),
        sync=SyncConfig(batch_delay=0.0),
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("CALENDAR_CRAWLER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    yield ConfigRepository(locator)
