"""
Query Expansion Tests
"""

from searchloop.engine.expander import QueryExpander


async def test_variants_are_distinct_and_capped(fake_oracle):
    oracle = fake_oracle(expansions=["Rentenreform", "rentenreform ", "RENTE", "Rentenniveau", "Altersvorsorge"])

    variants = await QueryExpander(oracle, max_variants=2).expand("Rente")

    assert variants == ["Rentenreform", "Rentenniveau"]


async def test_expansion_failure_yields_no_variants(fake_oracle):
    oracle = fake_oracle(fail={"expand_query"})

    assert await QueryExpander(oracle).expand("Rente") == []


async def test_unexpected_oracle_exception_yields_no_variants(fake_oracle):
    oracle = fake_oracle(fail={"expand_query"}, error=RuntimeError("pool exhausted"))

    assert await QueryExpander(oracle).expand("Rente") == []


async def test_expansion_timeout_yields_no_variants(fake_oracle):
    oracle = fake_oracle(expansions=["Rentenreform"], delay=1.0)

    assert await QueryExpander(oracle, timeout=0.05).expand("Rente") == []


async def test_no_oracle():
    assert await QueryExpander(None).expand("Rente") == []
