import io
import itertools

import pytest
from PIL import Image

from tuigram.backend import LocalBackend
from tuigram.config import Settings
from tuigram.controller import Controller
from tuigram.store import MemoryStore


class Clock:
    """Deterministic millisecond clock; every read advances one second."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        self.now += 1000
        return self.now


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def backend(store):
    counter = itertools.count(1)
    return LocalBackend(store, id_factory=lambda: f"_user{next(counter)}")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def controller(backend, clock, tmp_path):
    counter = itertools.count(1)
    ctl = Controller(
        backend,
        settings=Settings(data_file=tmp_path / "store.json"),
        clock=clock,
        id_factory=lambda: f"_post{next(counter)}",
    )
    ctl.bootstrap()
    return ctl


def make_png_bytes(color=(255, 0, 0), size=(8, 8)):
    buf = io.BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_file(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(make_png_bytes())
    return path


def register_and_login(controller, name, email=None, password="secret"):
    email = email or f"{name.lower()}@gmail.com"
    controller.register(name, email, password, password)
    return controller.login(email, password)
