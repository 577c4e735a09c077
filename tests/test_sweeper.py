"""
Tests for ssh_broker.services.expiration_sweeper.
"""

import threading

from ssh_broker.domain.types import AuthDecision, ReclaimOutcome
from ssh_broker.exceptions import ContainerRemovalFailure
from ssh_broker.services.expiration_sweeper import ExpirationSweeper


def _closed_session(broker, username, key):
    handler = broker.open_connection()
    assert handler.on_credential_offered(username, key) is AuthDecision.ACCEPT
    handler.on_disconnected()


class TestRunOnce:

    def test_reclaims_due_users(self, broker, clock, alice_key, mock_engine):
        """A sweep after the grace period removes the container."""
        broker.register_container("alice", "c1")
        _closed_session(broker, "alice", alice_key)
        clock.advance(broker.grace_period)

        sweeper = ExpirationSweeper(broker, interval=30)
        outcomes = sweeper.run_once()

        assert outcomes == {"alice": ReclaimOutcome.RECLAIMED}
        mock_engine.remove.assert_called_once_with("c1")
        stats = sweeper.get_stats()
        assert stats["sweeps"] == 1
        assert stats["reclaimed"] == 1
        assert stats["failed"] == 0
        assert stats["last_sweep"] is not None

    def test_failure_counted_and_retried(self, broker, clock, alice_key, mock_engine):
        broker.register_container("alice", "c1")
        _closed_session(broker, "alice", alice_key)
        clock.advance(broker.grace_period)
        mock_engine.remove.side_effect = ContainerRemovalFailure("c1", "timeout")

        sweeper = ExpirationSweeper(broker)
        sweeper.run_once()
        assert sweeper.get_stats()["failed"] == 1

        mock_engine.remove.side_effect = None
        sweeper.run_once()
        assert sweeper.get_stats()["reclaimed"] == 1
        assert broker.containers.get("alice") is None

    def test_nothing_tracked(self, broker):
        sweeper = ExpirationSweeper(broker)
        assert sweeper.run_once() == {}
        assert sweeper.get_stats()["sweeps"] == 1


class TestSweepLoop:

    def test_loop_survives_errors(self, broker, mocker):
        """An unexpected error is counted and the loop keeps going."""
        sweeper = ExpirationSweeper(broker, interval=0)
        second_sweep = threading.Event()
        calls = []

        def flaky_sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("unexpected")
            second_sweep.set()
            sweeper.stop()
            return {}

        mocker.patch.object(broker, "sweep", side_effect=flaky_sweep)

        sweeper.start()
        assert second_sweep.wait(timeout=5)
        assert sweeper.get_stats()["errors"] == 1
        assert sweeper.running is False

    def test_start_and_stop(self, broker):
        sweeper = ExpirationSweeper(broker, interval=3600)
        sweeper.start()
        assert sweeper.running is True
        sweeper.stop()
        assert sweeper.running is False
        assert sweeper._stop_event.is_set()
