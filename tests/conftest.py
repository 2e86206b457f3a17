"""Shared fixtures: an in-process context with fake embedding and chat models."""

import pytest

from tests.fakes import FakeEmbedder, make_context, make_llm, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
async def context(settings, fake_embedder):
    ctx = make_context(settings, llm=make_llm(), embedder=fake_embedder)
    await ctx.metadata_store.create_tables()
    yield ctx
    await ctx.aclose()
