"""Tests for the controller loop."""

from unittest.mock import patch

import pytest

from autoingress.controller import AutoIngressController
from autoingress.exceptions import BootstrapError, RegistryError, WatchExpiredError
from autoingress.models import ServiceEvent

from conftest import FakeRegistry, make_ingress, make_service


class TestAutoIngressController:
    """Tests for AutoIngressController."""

    @pytest.fixture
    def registry(self):
        registry = FakeRegistry(
            services=[make_service("web", "enabled"), make_service("db")],
            ingresses=[make_ingress("legacy", "legacy")],
        )
        return registry

    @pytest.fixture
    def controller(self, registry, controller_config):
        controller = AutoIngressController(controller_config, registry)
        registry.on_exhausted = controller.stop
        return controller

    def test_bootstrap_runs_once(self, controller, registry):
        assert not controller.ready.is_set()

        first = controller.bootstrap()
        second = controller.bootstrap()

        assert first is second
        assert controller.ready.is_set()
        assert registry.list_primary_calls == 1
        assert controller.index.keys() == ["legacy", "web"]

    def test_bootstrap_failure_propagates(self, controller, registry):
        registry.fail_list_primary = RegistryError("list_primary", "forbidden", status=403)

        with pytest.raises(BootstrapError):
            controller.run()
        assert not controller.ready.is_set()

    def test_run_processes_events_after_bootstrap(self, controller, registry):
        registry.watch_batches = [[
            ServiceEvent.changed(make_service("db"), make_service("db", "enabled")),
            ServiceEvent.changed(make_service("web", "enabled"), make_service("web", "disabled")),
            ServiceEvent.observed(make_service("db", "enabled")),
        ]]

        controller.run()

        assert [i.name for i in registry.create_calls] == ["web", "db"]
        assert registry.delete_calls == ["web"]
        assert controller.index.keys() == ["db", "legacy"]
        assert controller.stopped

    def test_watch_is_resumed_after_stream_ends(self, controller, registry):
        registry.watch_batches = [
            [ServiceEvent.observed(make_service("a", "enabled"))],
            [ServiceEvent.observed(make_service("b", "enabled"))],
        ]

        controller.run()

        assert "a" in controller.index
        assert "b" in controller.index

    def test_expired_watch_triggers_resync(self, controller, registry):
        registry.watch_batches = [
            [ServiceEvent.observed(make_service("temp", "enabled"))],
            WatchExpiredError("watch_primary", "too old resource version", status=410),
        ]
        # While the watch was down: "temp" was deleted and "db" got enabled
        registry.services["db"] = make_service("db", "enabled")

        controller.run()

        assert registry.list_primary_calls == 2
        assert "temp" not in controller.index
        assert "temp" in registry.delete_calls
        assert "db" in controller.index

    def test_watch_error_backs_off_and_retries(self, controller, registry):
        registry.watch_batches = [
            RegistryError("watch_primary", "connection reset"),
            [ServiceEvent.observed(make_service("late", "enabled"))],
        ]

        with patch.object(controller, "_backoff", return_value=2) as mock_backoff:
            controller.run()

        mock_backoff.assert_called_once_with(1)
        assert "late" in controller.index

    def test_resync_failure_backs_off(self, controller, registry):
        controller.bootstrap()
        registry.fail_list_primary = RegistryError("list_primary", "unavailable", status=503)
        registry.watch_batches = [WatchExpiredError("watch_primary", "gone", status=410)]

        with patch.object(controller, "_backoff", return_value=2) as mock_backoff:
            controller.run()

        mock_backoff.assert_called_once()
        assert controller.index.keys() == ["legacy", "web"]

    def test_stop_interrupts_watch(self, controller, registry):
        controller.stop()

        assert controller.stopped
        assert registry.stopped

    def test_handle_tracks_known_services(self, controller, registry):
        controller.bootstrap()

        controller.handle(ServiceEvent.removed(make_service("web", "enabled")))
        controller.handle(ServiceEvent.observed(make_service("new")))

        assert set(controller._known) == {"db", "new"}

    def test_failing_event_does_not_stop_the_loop(self, controller, registry):
        registry.watch_batches = [[
            ServiceEvent.observed(make_service("bad", "enabled")),
            ServiceEvent.observed(make_service("good", "enabled")),
        ]]
        dispatch = controller.dispatcher.dispatch

        def flaky_dispatch(event):
            if event.service.name == "bad":
                raise ValueError("unexpected service shape")
            return dispatch(event)

        with patch.object(controller.dispatcher, "dispatch", side_effect=flaky_dispatch):
            controller.run()

        assert "good" in controller.index
        assert "bad" not in controller.index
        assert controller.ready.is_set()

    def test_loop_crash_clears_readiness(self, controller, registry):
        registry.watch_batches = [RuntimeError("watch stream broke")]

        with pytest.raises(RuntimeError, match="watch stream broke"):
            controller.run()

        assert not controller.ready.is_set()
