"""
Tests for the keyring, logging setup and voter notification.
"""
import json
import logging

import httpx
import pytest

from verivote.core.keyring import COLLECTOR_IDENTITY, load_or_create_keyring
from verivote.core.logging import JsonFormatter, configure_logging
from verivote.crypto.certificates import certificate_identity, verify_certificate
from verivote.services.notifier import LoggingNotifier, WebhookNotifier


class TestKeyring:

    def test_created_then_loaded(self, tmp_path):
        created = load_or_create_keyring(str(tmp_path / "keys"))
        loaded = load_or_create_keyring(str(tmp_path / "keys"))

        assert loaded == created
        assert certificate_identity(created.collector_certificate_pem) == COLLECTOR_IDENTITY
        assert verify_certificate(
            created.collector_certificate_pem,
            created.issuer_certificate_pem,
            COLLECTOR_IDENTITY,
            created.collector_public_pem,
        )

    def test_mismatched_key_refused(self, tmp_path):
        first = load_or_create_keyring(str(tmp_path / "a"))
        second = load_or_create_keyring(str(tmp_path / "b"))

        (tmp_path / "a" / "collector.key.pem").write_text(second.collector_private_pem)

        with pytest.raises(ValueError):
            load_or_create_keyring(str(tmp_path / "a"))
        assert first.collector_private_pem != second.collector_private_pem


class TestLogging:

    def test_json_formatter(self):
        record = logging.LogRecord("verivote.test", logging.INFO, __file__, 1, "stored %s", ("vid",), None)

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "verivote.test"
        assert entry["message"] == "stored vid"

    def test_configure_replaces_handlers(self):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            configure_logging(level="debug", fmt="text")

            assert len(root.handlers) == 1
            assert not isinstance(root.handlers[0].formatter, JsonFormatter)
            assert root.level == logging.DEBUG
        finally:
            root.handlers, level = saved
            root.setLevel(level)


class TestNotifier:

    @pytest.mark.asyncio
    async def test_webhook_posts(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        notifier = WebhookNotifier("http://notify.test/hook", transport=httpx.MockTransport(handler))
        await notifier.ballot_stored("voter-1", "vid", 7)

        assert received == [{"voter_id": "voter-1", "identifier": "vid", "store_tick": 7}]

    @pytest.mark.asyncio
    async def test_webhook_failure_is_logged(self, caplog):
        notifier = WebhookNotifier(
            "http://notify.test/hook",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )

        with caplog.at_level(logging.WARNING):
            await notifier.ballot_stored("voter-1", "vid", 7)

        assert "Notification for voter voter-1 failed" in caplog.text

    @pytest.mark.asyncio
    async def test_collector_notifies_when_finality_not_required(
        self, test_db, keyring, clock, registration_service, make_voter, cast_ballot
    ):
        from verivote.services.registration_service import LocalRegistrationGateway
        from verivote.services.vote_collector import VoteCollector

        class Recorder(LoggingNotifier):
            def __init__(self):
                self.calls = []

            async def ballot_stored(self, voter_id, identifier, store_tick):
                self.calls.append((voter_id, identifier, store_tick))

        recorder = Recorder()
        collector = VoteCollector(
            test_db,
            keyring,
            clock,
            LocalRegistrationGateway(registration_service),
            notifier=recorder,
            notify_on_store=True,
            challenge_mode="token",
        )
        voter = await make_voter("voter-1")

        confirmation, _ = await cast_ballot(voter, 1, via=collector)

        assert recorder.calls == [("voter-1", confirmation.identifier, 0)]
