from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Ensure src/ is importable when tests run from repo root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from affiliate_posts.config import AppConfig  # noqa: E402
from affiliate_posts.generation.providers import TextProvider  # noqa: E402
from affiliate_posts.service import BlogService  # noqa: E402
from affiliate_posts.store import RecordStore  # noqa: E402


class FakeProvider(TextProvider):
    """Returns canned replies in order and records every call."""

    name = "fake"

    def __init__(self, replies: Optional[List[Any]] = None, *, supports_grounding: bool = True) -> None:
        super().__init__("fake-model")
        self.replies = list(replies or [])
        self.supports_grounding = supports_grounding
        self.calls: List[Dict[str, Any]] = []

    def generate(self, prompt, *, schema=None, grounded=False, temperature=None):
        self.calls.append({"prompt": prompt, "schema": schema, "grounded": grounded, "temperature": temperature})
        if not self.replies:
            return ""
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingFactory:
    """Provider factory that hands out one FakeProvider and remembers the keys it saw."""

    def __init__(self, provider: FakeProvider) -> None:
        self.provider = provider
        self.keys: List[Optional[str]] = []

    def __call__(self, config: AppConfig, api_key: Optional[str]) -> TextProvider:
        self.keys.append(api_key)
        return self.provider


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    (tmp_path / "README.md").write_text("test marker", encoding="utf-8")
    return tmp_path


@pytest.fixture
def store(project_root: Path) -> RecordStore:
    return RecordStore(root_dir=str(project_root))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def factory(provider: FakeProvider) -> RecordingFactory:
    return RecordingFactory(provider)


@pytest.fixture
def service(store: RecordStore, factory: RecordingFactory) -> BlogService:
    return BlogService(store, AppConfig(api_key="test-key"), provider_factory=factory)
