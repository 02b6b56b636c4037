"""
Tests for the fire-and-forget review dispatcher.
"""

import logging
import threading
from unittest.mock import MagicMock

import pytest

from coderevu.errors import RepositoryNotFoundError
from coderevu.webhooks.dispatcher import ReviewDispatcher


@pytest.fixture
def make_dispatcher(database, queue):
    created = []

    def _make(trigger):
        dispatcher = ReviewDispatcher(database, queue, max_workers=2, trigger=trigger)
        created.append(dispatcher)
        return dispatcher

    yield _make
    for dispatcher in created:
        dispatcher.shutdown()


class TestReviewDispatcher:
    """Tests for ReviewDispatcher.submit."""

    def test_submit_runs_trigger_with_own_session(self, make_dispatcher, queue):
        trigger = MagicMock(return_value={"success": True, "message": "Review Queued"})
        dispatcher = make_dispatcher(trigger)

        future = dispatcher.submit("o", "r", 7)

        assert future.result(timeout=5) == {"success": True, "message": "Review Queued"}
        db, passed_queue, owner, repo, number = trigger.call_args.args
        assert passed_queue is queue
        assert (owner, repo, number) == ("o", "r", 7)
        assert db is not None

    def test_submit_returns_before_trigger_finishes(self, make_dispatcher):
        release = threading.Event()

        def slow_trigger(*args, **kwargs):
            release.wait(timeout=5)
            return {"success": True}

        dispatcher = make_dispatcher(slow_trigger)
        future = dispatcher.submit("o", "r", 7)

        assert future.done() is False
        release.set()
        future.result(timeout=5)

    def test_trigger_error_is_logged_not_raised(self, make_dispatcher, caplog):
        """Errors go to the dispatcher's log channel only."""
        trigger = MagicMock(side_effect=RepositoryNotFoundError("Repository o/r not found"))
        dispatcher = make_dispatcher(trigger)

        with caplog.at_level(logging.ERROR, logger="coderevu.webhooks.dispatcher"):
            future = dispatcher.submit("o", "r", 7)
            with pytest.raises(RepositoryNotFoundError):
                future.result(timeout=5)
            dispatcher.shutdown()

        assert "Review failed for o/r #7" in caplog.text
        assert "Repository o/r not found" in caplog.text

    def test_success_is_logged(self, make_dispatcher, caplog):
        dispatcher = make_dispatcher(MagicMock(return_value={"success": True}))

        with caplog.at_level(logging.INFO, logger="coderevu.webhooks.dispatcher"):
            dispatcher.submit("o", "r", 7).result(timeout=5)
            dispatcher.shutdown()

        assert "Review queued for o/r #7" in caplog.text

    def test_github_client_factory_is_forwarded(self, database, queue):
        factory = MagicMock()
        trigger = MagicMock(return_value={"success": True})
        dispatcher = ReviewDispatcher(
            database, queue, trigger=trigger, github_client_factory=factory
        )

        dispatcher.submit("o", "r", 7).result(timeout=5)
        dispatcher.shutdown()

        assert trigger.call_args.kwargs["github_client_factory"] is factory
