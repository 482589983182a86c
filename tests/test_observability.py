"""Tests for Sentry wiring."""

from herald.config.models import SentryConfig
from herald.observability import init_sentry, scrub_event


class TestInitSentry:
    def test_disabled_without_dsn(self):
        assert init_sentry(SentryConfig()) is False


class TestScrubEvent:
    def test_masks_exception_values_and_breadcrumbs(self):
        event = {
            "exception": {
                "values": [{"value": "rejected Bearer abcdefghijklmnopqrstuv"}]
            },
            "breadcrumbs": {
                "values": [{"message": "QSTASH_TOKEN=verysecretvalue123456"}]
            },
            "logentry": {"message": "sent with Bearer zyxwvutsrqponmlkjihg"},
        }

        scrubbed = scrub_event(event, {})

        assert "abcdefghijklmnopqrstuv" not in scrubbed["exception"]["values"][0]["value"]
        assert "verysecretvalue123456" not in scrubbed["breadcrumbs"]["values"][0]["message"]
        assert "zyxwvutsrqponmlkjihg" not in scrubbed["logentry"]["message"]

    def test_leaves_sparse_events_alone(self):
        event = {"message": "dispatch_failed"}
        assert scrub_event(event, {}) == {"message": "dispatch_failed"}
