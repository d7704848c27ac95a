"""
Specification validator tests.
"""

import json

import pytest

from storebot.llm.oracle import OracleError
from storebot.ranking.spec_validator import describe_for_validation, validate


def _verdict(has_specs, ids=(), similar=False):
    return json.dumps({
        "tiene_especificaciones": has_specs,
        "productos_finales": list(ids),
        "son_similares": similar,
    })


@pytest.fixture
def candidates(catalog):
    return [catalog.get("onesie-1"), catalog.get("pijama-1"), catalog.get("blusa-1"), catalog.get("mochila-1")]


class TestValidate:
    def test_no_constraints_passes_everything(self, stub_oracle, config, candidates):
        oracle = stub_oracle(validation=_verdict(False))
        result = validate(candidates, "quiero ver ropa", oracle, config)
        assert result.products == candidates
        assert result.is_only_similar is False

    def test_constraints_narrow_in_candidate_order(self, stub_oracle, config, candidates):
        oracle = stub_oracle(validation=_verdict(True, ["blusa-1", "onesie-1"]))
        result = validate(candidates, "algo en rojo o azul", oracle, config)
        assert [p.id for p in result.products] == ["onesie-1", "blusa-1"]
        assert result.is_only_similar is False

    def test_similar_flag_is_kept(self, stub_oracle, config, candidates):
        oracle = stub_oracle(validation=_verdict(True, ["onesie-1"], similar=True))
        result = validate(candidates, "body rojo", oracle, config)
        assert [p.id for p in result.products] == ["onesie-1"]
        assert result.is_only_similar is True

    def test_constraints_can_eliminate_everything(self, stub_oracle, config, candidates):
        oracle = stub_oracle(validation=_verdict(True, []))
        result = validate(candidates, "en talla XXL", oracle, config)
        assert result.products == []

    def test_only_known_ids_are_kept(self, stub_oracle, config, candidates):
        oracle = stub_oracle(validation=_verdict(True, ["otro", "pijama-1"]))
        assert [p.id for p in validate(candidates, "talla 4", oracle, config).products] == ["pijama-1"]

    def test_result_is_capped(self, stub_oracle, config, many_bodies):
        oracle = stub_oracle(validation=_verdict(True, [p.id for p in many_bodies]))
        result = validate(many_bodies, "talla 0-3m", oracle, config)
        assert len(result.products) == config.validator_max_results

    def test_empty_candidates_skip_the_oracle(self, stub_oracle, config):
        oracle = stub_oracle()
        assert validate([], "rojo", oracle, config).products == []
        assert oracle.calls == []

    @pytest.mark.parametrize("reply", [
        OracleError("boom"),
        "sí, todos cumplen",
        '{"tiene_especificaciones": "quizás"}',
    ])
    def test_failure_keeps_first_three(self, stub_oracle, config, candidates, reply):
        oracle = stub_oracle(validation=reply)
        result = validate(candidates, "en rojo", oracle, config)
        assert result.products == candidates[:3]
        assert result.is_only_similar is False


class TestDescription:
    def test_lists_colors_stocked_sizes_and_price(self, catalog, config):
        text = describe_for_validation(catalog.get("pijama-1"), config.currency_symbol)
        assert "Colores: Rosado" in text
        assert "Tallas con stock: 4 |" in text
        assert "Precio: S/ 35.00" in text

    def test_price_range(self, make_product, config):
        product = make_product("r", "Rango", sizes=(("S", 1, 10.0), ("L", 1, 12.5)))
        assert "S/ 10.00 - S/ 12.50" in describe_for_validation(product, config.currency_symbol)
