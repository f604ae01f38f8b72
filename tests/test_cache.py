"""
Tests for the synthesis cache.
"""

import pytest

from facetcraft.config import configure
from facetcraft.facets.cache import SynthesisCache, synthesis_cache

from sample_domain import LineFacet, OrderFacet


class TestSynthesisCache:

    def test_builds_once(self):
        cache = SynthesisCache()
        calls = []

        def build():
            calls.append(1)
            return object()

        first = cache.get_or_build(("k", "model"), build)
        assert cache.get_or_build(("k", "model"), build) is first
        assert calls == [1]
        assert (cache.hits, cache.misses) == (1, 1)
        assert ("k", "model") in cache

    def test_failed_build_is_not_stored(self):
        cache = SynthesisCache()

        def fail():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            cache.get_or_build(("k", "model"), fail)
        assert len(cache) == 0

    def test_discard_one_owner(self):
        cache = SynthesisCache()
        cache.get_or_build((LineFacet, "model"), object)
        cache.get_or_build((LineFacet, "projection"), object)
        cache.get_or_build((OrderFacet, "model"), object)

        cache.discard(LineFacet)
        assert len(cache) == 1
        assert (OrderFacet, "model") in cache

    def test_clear(self):
        cache = SynthesisCache()
        cache.get_or_build(("k", "model"), object)
        cache.clear()
        assert len(cache) == 0
        assert (cache.hits, cache.misses) == (0, 0)


class TestFacetArtifacts:

    def test_models_are_shared(self):
        assert LineFacet._facet_model() is LineFacet._facet_model()
        assert (LineFacet, "model") in synthesis_cache

    def test_nested_facets_are_built_on_demand(self):
        OrderFacet._facet_forward()
        assert (OrderFacet, "forward") in synthesis_cache
        assert (LineFacet, "model") not in synthesis_cache

        OrderFacet.projection()
        assert (LineFacet, "model") in synthesis_cache

    def test_configure_clears(self):
        model = LineFacet._facet_model()
        configure(default_max_depth=2)
        assert (LineFacet, "model") not in synthesis_cache
        assert LineFacet._facet_model() is not model
        assert LineFacet._facet_model().max_depth == 2
