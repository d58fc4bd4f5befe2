import os
from collections.abc import AsyncGenerator, Sequence
from typing import Any

import pytest
from githubkit.github import GitHub
from pydantic import BaseModel

from github_profile_analyzer.clients.github import get_githubkit_client

GITHUB_TOKEN = os.getenv("GITHUB_TOKEN") or os.getenv("GITHUB_PERSONAL_ACCESS_TOKEN")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if GITHUB_TOKEN:
        return

    skip_live = pytest.mark.skip(reason="GITHUB_TOKEN is not set")

    for item in items:
        if "skip_on_ci" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
async def githubkit_client() -> AsyncGenerator[GitHub[Any], Any]:
    githubkit_client = get_githubkit_client()

    async with githubkit_client:
        yield githubkit_client


def handle_exclude_keys(obj: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return obj

    return {key: value for key, value in obj.items() if key not in exclude_keys}


def dump_for_snapshot(basemodel: BaseModel, /, exclude_keys: list[str] | None = None, **dump_kwargs: Any) -> dict[str, Any]:
    return handle_exclude_keys(basemodel.model_dump(mode="json", exclude_none=True, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodels: Sequence[BaseModel], /, exclude_keys: list[str] | None = None, **dump_kwargs: Any
) -> list[dict[str, Any]]:
    return [dump_for_snapshot(basemodel, exclude_keys=exclude_keys, **dump_kwargs) for basemodel in basemodels]
