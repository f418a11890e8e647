from __future__ import annotations

import os

os.environ["LOGURU_LEVEL"] = "DEBUG"

import pytest
from fastapi.testclient import TestClient

from moonlight.app import app as APP
from moonlight.config import Config, get_config
from moonlight.llms.models import get_image_model, get_text_model
from moonlight.session import InMemoryStorage

from fakes import FakeImageModel, ScriptedModel


@pytest.fixture
def image_model() -> FakeImageModel:
    return FakeImageModel()


@pytest.fixture
def scripted() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def app(scripted, image_model):
    # Dependencies injection mock
    APP.dependency_overrides = {
        get_config: lambda: Config(),
        get_text_model: lambda: scripted.model,
        get_image_model: lambda: image_model,
    }
    yield APP
    APP.dependency_overrides = {}


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
