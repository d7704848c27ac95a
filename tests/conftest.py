"""Pytest configuration for storebot tests."""

import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("STOREBOT_SKIP_PRELOAD", "1")

from storebot.core.config import StorebotConfig, set_config
from storebot.data.catalog_store import InMemoryCatalogStore
from storebot.data.models import Product
from storebot.llm.oracle import OracleError


# ---------------------------------------------------------------------------
# Stub oracle
#
# Each pipeline stage sends a recognisable prompt, so replies are scripted
# per stage rather than per call order. A scripted reply may be a string, an
# exception instance (raised), a callable taking the prompt, or a list of
# any of these consumed one per call.
# ---------------------------------------------------------------------------

STAGE_MARKERS = [
    ("classification", "Clasifica la consulta"),
    ("candidate_filter", "Selecciona los productos"),
    ("validation", "Revisa si los productos"),
    ("response", "INSTRUCCIONES PARA LA RESPUESTA"),
]


def stage_of(prompt, system=None):
    if system is not None:
        return "general"
    for stage, marker in STAGE_MARKERS:
        if marker in prompt:
            return stage
    return "unknown"


class StubOracle:
    def __init__(self, **replies):
        self.replies = {stage: list(r) if isinstance(r, list) else r for stage, r in replies.items()}
        self.calls = []

    def generate(self, prompt, *, system=None, history=None, image=None, temperature=None):
        stage = stage_of(prompt, system)
        self.calls.append({
            "stage": stage,
            "prompt": prompt,
            "system": system,
            "history": history,
            "image": image,
            "temperature": temperature,
        })

        reply = self.replies.get(stage)
        if isinstance(reply, list):
            reply = reply.pop(0) if reply else None
        if reply is None:
            raise OracleError(f"No scripted reply for stage {stage!r}")
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply

    def stages(self):
        return [call["stage"] for call in self.calls]

    def prompts_for(self, stage):
        return [call["prompt"] for call in self.calls if call["stage"] == stage]


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def config():
    """Fresh default configuration, installed globally for each test."""
    cfg = StorebotConfig()
    set_config(cfg)
    yield cfg
    set_config(None)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def stub_oracle():
    return StubOracle


_BASE_TIME = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def make_product():
    """Factory for products: one variation per color, sizes as (label, qty, price)."""
    counter = {"n": 0}

    def _make(
        product_id,
        name,
        category="Conjuntos",
        subcategory="",
        colors=("Azul",),
        sizes=(("M", 1, 10.0),),
        description="",
        active=True,
        age_days=None,
    ):
        counter["n"] += 1
        created = _BASE_TIME - timedelta(days=age_days if age_days is not None else counter["n"])
        return Product(
            id=product_id,
            name=name,
            description=description,
            category=category,
            subcategory=subcategory,
            active=active,
            created_at=created,
            variations=[
                {
                    "colors": [color],
                    "sizes": [{"size": s, "quantity": q, "price": p} for s, q, p in sizes],
                }
                for color in colors
            ],
        )

    return _make


@pytest.fixture
def onesie(make_product):
    return make_product(
        "onesie-1",
        "Baby Onesie",
        category="Conjuntos",
        subcategory="Bodies para bebé",
        colors=("blue",),
        sizes=(("0-3m", 5, 20.00),),
        description="Body de algodón para bebé",
    )


@pytest.fixture
def catalog(make_product, onesie):
    """Small mixed catalog (one inactive product)."""
    return InMemoryCatalogStore([
        onesie,
        make_product("pijama-1", "Pijama Niña Estrellas", subcategory="Pijamas",
                     colors=("Rosado",), sizes=(("4", 3, 35.0), ("6", 0, 35.0))),
        make_product("mochila-1", "Mochila Niña Unicornio", category="Bolsos y Mochilas",
                     subcategory="Mochila de niña", colors=("Lila",), sizes=(("Única", 7, 59.9),)),
        make_product("blusa-1", "Blusa de Maternidad Lino", category="Maternidad",
                     subcategory="Blusas de Maternidad", colors=("Rojo", "Beige"),
                     sizes=(("M", 2, 65.0),)),
        make_product("polo-1", "Polo Niño Dinosaurio", category="Prendas superiores",
                     subcategory="Polos infantiles", active=False, sizes=(("8", 10, 25.0),)),
    ])


@pytest.fixture
def many_bodies(make_product):
    """Ten products in one subcategory with distinct stock levels."""
    return [
        make_product(f"body-{i}", f"Body Bebé Modelo {i}", subcategory="Bodies para bebé",
                     sizes=(("0-3m", i, 20.0 + i),))
        for i in range(1, 11)
    ]
