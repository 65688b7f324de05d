"""テスト共通フィクスチャ。"""

from pathlib import Path

import pytest

from plumb.config import AnalyzerInfo, ServerConfig
from plumb.services.analyzer import AnalyzerService
from plumb.services.context import ProjectContextBuilder
from plumb.services.error_context import ErrorContextResolver
from plumb.services.knowledge import KnowledgeBase
from plumb.services.suggestions import SuggestionEngine

SAMPLE_PYPROJECT = """\
[project]
name = "shop"
version = "0.1.0"
dependencies = [
    "httpx>=0.27",
    "pydantic>=2.0,<3",  # models
]

[project.optional-dependencies]
test = ["pytest>=8.0"]
"""

SAMPLE_MODELS = '''\
"""Domain models."""

import json
from dataclasses import dataclass
from typing import Optional

import pydantic


@dataclass
class Customer:
    name: str
    email: Optional[str] = None


class Order(pydantic.BaseModel):
    id: int
    total: float = 0.0

    def __init__(self, **data):
        super().__init__(**data)
        self.items = []

    @property
    def is_empty(self) -> bool:
        return not self.items

    @classmethod
    def from_json(cls, raw: str) -> "Order":
        return cls(**json.loads(raw))

    def add_item(self, item) -> None:
        if item is None:
            raise ValueError("item error: None is not allowed")
        self.items.append(item)
'''

SAMPLE_CLIENT = '''\
import asyncio

import httpx

from shop.models import Order


class ApiClient:
    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    async def fetch_order(self, order_id: int) -> Order | None:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{self.base_url}/orders/{order_id}")
        return Order.from_json(response.text)

    def legacy_fetch(self):
        """Fetch synchronously. Deprecated: use fetch_order instead."""
        return asyncio.run(self.fetch_order(1))
'''


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def server_config(config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(config_dir=config_dir)


@pytest.fixture
def analyzer_info() -> AnalyzerInfo:
    """PATH探索を行わない固定のアナライザー情報。"""
    return AnalyzerInfo(command="ruff", path="/usr/bin/ruff", version="ruff 0.6.9")


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """pyproject.tomlと数個のソースファイルを持つテスト用プロジェクト。"""
    root = tmp_path / "shop"
    (root / "src" / "shop").mkdir(parents=True)
    (root / "pyproject.toml").write_text(SAMPLE_PYPROJECT, encoding="utf-8")
    (root / "src" / "shop" / "models.py").write_text(SAMPLE_MODELS, encoding="utf-8")
    (root / "src" / "shop" / "client.py").write_text(SAMPLE_CLIENT, encoding="utf-8")
    # 除外対象のディレクトリ
    (root / ".venv" / "lib").mkdir(parents=True)
    (root / ".venv" / "lib" / "vendored.py").write_text("class Vendored:\n    pass\n", encoding="utf-8")
    return root


@pytest.fixture
def knowledge(config_dir: Path) -> KnowledgeBase:
    """テスト用KnowledgeBase。"""
    return KnowledgeBase(config_dir=config_dir)


@pytest.fixture
def analyzer_service(server_config: ServerConfig, analyzer_info: AnalyzerInfo) -> AnalyzerService:
    """テスト用AnalyzerService。"""
    return AnalyzerService(server_config, analyzer_info)


@pytest.fixture
def context_builder(server_config: ServerConfig) -> ProjectContextBuilder:
    """テスト用ProjectContextBuilder。"""
    return ProjectContextBuilder(server_config)


@pytest.fixture
def error_resolver(
    server_config: ServerConfig, knowledge: KnowledgeBase, context_builder: ProjectContextBuilder
) -> ErrorContextResolver:
    """テスト用ErrorContextResolver。"""
    return ErrorContextResolver(server_config, knowledge, context_builder)


@pytest.fixture
def suggestion_engine(
    server_config: ServerConfig, knowledge: KnowledgeBase, context_builder: ProjectContextBuilder
) -> SuggestionEngine:
    """テスト用SuggestionEngine。"""
    return SuggestionEngine(server_config, knowledge, context_builder)
