"""Tests for the ingress index."""

import pytest

from autoingress.exceptions import IndexConflictError
from autoingress.index import IngressIndex

from conftest import make_ingress


class TestIngressIndex:
    """Tests for IngressIndex."""

    def test_empty(self, index):
        assert len(index) == 0
        assert index.keys() == []
        assert index.get("web") is None
        assert "web" not in index

    def test_set_get_remove(self, index):
        ingress = make_ingress("web", "web")

        index.set("web", ingress)
        assert "web" in index
        assert index.get("web") == ingress

        assert index.remove("web") == ingress
        assert "web" not in index
        assert index.remove("web") is None

    def test_keys_sorted(self, index):
        for name in ["zeta", "alpha", "mid"]:
            index.set(name, make_ingress(name, name))

        assert index.keys() == ["alpha", "mid", "zeta"]
        assert list(index) == ["alpha", "mid", "zeta"]

    def test_one_ingress_per_service(self, index):
        index.set("web", make_ingress("web", "web"))

        with pytest.raises(IndexConflictError):
            index.set("web", make_ingress("other", "web"))
        assert index.get("web").name == "web"

    def test_set_same_ingress_refreshes(self, index):
        index.set("web", make_ingress("web", "web"))
        refreshed = make_ingress("web", "web", "api")

        index.set("web", refreshed)

        assert index.get("web") == refreshed
        assert len(index) == 1

    def test_shared_ingress_tracked_for_several_services(self, index):
        shared = make_ingress("shared", "a", "b")
        index.set("a", shared)
        index.set("b", shared)

        assert index.keys() == ["a", "b"]

    def test_entries(self):
        index = IngressIndex()
        index.set("web", make_ingress("web", "web"))

        entries = index.entries()

        assert len(entries) == 1
        assert entries[0].service_name == "web"
        assert entries[0].ingress_name == "web"
        assert entries[0].hostname == "web.example.com"

    def test_remove_ingress_untracks_every_service(self, index):
        shared = make_ingress("shared", "a", "b")
        index.set("b", shared)
        index.set("a", shared)
        index.set("c", make_ingress("c", "c"))

        assert index.remove_ingress("shared") == ["a", "b"]
        assert index.keys() == ["c"]
        assert index.remove_ingress("shared") == []
