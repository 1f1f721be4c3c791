"""Tests for the startup reconciliation pass."""

import pytest

from autoingress.exceptions import BootstrapError, RegistryError
from autoingress.reconciler import bootstrap

from conftest import FakeRegistry, make_ingress, make_service


class TestBootstrap:
    """Tests for bootstrap."""

    def test_existing_ingress_is_adopted_not_duplicated(self, index, controller_config):
        existing = make_ingress("svc-a", "svc-a")
        registry = FakeRegistry(services=[make_service("svc-a", "enabled")], ingresses=[existing])

        result = bootstrap(registry, index, controller_config)

        assert registry.create_calls == []
        assert index.get("svc-a") == existing
        assert result.adopted == ["svc-a"]
        assert result.created == []

    def test_creates_for_eligible_services_only(self, index, controller_config):
        registry = FakeRegistry(services=[
            make_service("web", "enabled"),
            make_service("db", "disabled"),
            make_service("cache"),
            make_service("misc", "on"),
        ])

        result = bootstrap(registry, index, controller_config)

        assert [i.name for i in registry.create_calls] == ["web"]
        assert registry.create_calls[0].hostname == "web.example.com"
        assert index.keys() == ["web"]
        assert result.created == ["web"]
        assert [s.name for s in result.services] == ["web", "db", "cache", "misc"]

    def test_first_ingress_wins_on_duplicate_backends(self, index, controller_config):
        first = make_ingress("first", "svc-a", "svc-b")
        second = make_ingress("second", "svc-b", "svc-c")
        registry = FakeRegistry(ingresses=[first, second])

        result = bootstrap(registry, index, controller_config)

        assert index.get("svc-a").name == "first"
        assert index.get("svc-b").name == "first"
        assert index.get("svc-c").name == "second"
        assert result.adopted == ["svc-a", "svc-b", "svc-c"]

    def test_unlabelled_service_behind_existing_ingress_is_tracked(self, index, controller_config):
        registry = FakeRegistry(services=[make_service("manual")], ingresses=[make_ingress("manual", "manual")])

        bootstrap(registry, index, controller_config)

        assert "manual" in index
        assert registry.create_calls == []

    def test_list_derived_failure_is_fatal(self, index, controller_config):
        registry = FakeRegistry(services=[make_service("web", "enabled")])
        registry.fail_list_derived = RegistryError("list_derived", "forbidden", status=403)

        with pytest.raises(BootstrapError, match="cannot list ingresses"):
            bootstrap(registry, index, controller_config)
        assert registry.create_calls == []

    def test_list_primary_failure_is_fatal(self, index, controller_config):
        registry = FakeRegistry()
        registry.fail_list_primary = RegistryError("list_primary", "timeout")

        with pytest.raises(BootstrapError, match="cannot list services") as exc_info:
            bootstrap(registry, index, controller_config)
        assert isinstance(exc_info.value.__cause__, RegistryError)

    def test_create_failure_aborts_remaining_work(self, index, controller_config):
        registry = FakeRegistry(services=[
            make_service("a", "enabled"),
            make_service("b", "enabled", ports=[]),
            make_service("c", "enabled"),
        ])
        registry.fail_create["b"] = RegistryError("create_derived", "port required", name="b", status=422)

        with pytest.raises(BootstrapError, match="service b"):
            bootstrap(registry, index, controller_config)

        assert [i.name for i in registry.create_calls] == ["a", "b"]
        assert index.keys() == ["a"]
