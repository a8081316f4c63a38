"""Tests for peppol_as2.builder."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr

from peppol_as2.builder import AS2ClientBuilder
from peppol_as2.config import AS2Config, PeppolClientConfig, SenderConfig, SMPConfig
from peppol_as2.exceptions import AS2ClientBuilderError, AS2ClientBuilderValidationError
from peppol_as2.identifiers import ParticipantIdentifier
from peppol_as2.issues import CollectingMessageHandler, LoggingMessageHandler
from peppol_as2.models import AS2ClientRequest, AS2ClientSettings, SigningAlgorithm, TransportProfile
from peppol_as2.resources import ByteArrayResource
from peppol_as2.sbdh import parse_standard_business_document
from peppol_as2.smp import SMPClient
from tests.conftest import CBC_NS, FakeSMPClient


def sent(mock_as2_client) -> tuple[AS2ClientSettings, AS2ClientRequest]:
    mock_as2_client.send_synchronous.assert_called_once()
    settings, request = mock_as2_client.send_synchronous.call_args.args
    return settings, request


class TestSetters:
    def test_every_setter_returns_builder(self, receiver_certificate, sender_id, document_type_id, process_id):
        builder = AS2ClientBuilder()
        calls = [
            lambda b: b.set_message_handler(None),
            lambda b: b.set_as2_client(b._as2_client),
            lambda b: b.set_pkcs12_key_store("ks.p12", ""),
            lambda b: b.set_as2_subject("s"),
            lambda b: b.set_sender_as2_id("APP_1"),
            lambda b: b.set_sender_as2_email("a@b.com"),
            lambda b: b.set_sender_as2_key_alias("APP_1"),
            lambda b: b.set_receiver_as2_id("APP_2"),
            lambda b: b.set_receiver_as2_key_alias("APP_2"),
            lambda b: b.set_receiver_as2_url("https://x.example.com"),
            lambda b: b.set_receiver_certificate(receiver_certificate),
            lambda b: b.set_as2_signing_algorithm(SigningAlgorithm.SHA512),
            lambda b: b.set_as2_message_id_format("$rand.1234$"),
            lambda b: b.set_business_document(b"<a/>"),
            lambda b: b.set_peppol_sender_id(sender_id),
            lambda b: b.set_peppol_receiver_id(sender_id),
            lambda b: b.set_peppol_document_type_id(document_type_id),
            lambda b: b.set_peppol_process_id(process_id),
            lambda b: b.set_smp_client(None),
        ]
        for call in calls:
            assert call(builder) is builder

    def test_setters_only_assign(self):
        builder = AS2ClientBuilder().set_sender_as2_id("not-valid").set_pkcs12_key_store("/does/not/exist", None)
        assert builder.fields.sender_as2_id == "not-valid"
        assert builder.fields.key_store_path == Path("/does/not/exist")

    def test_defaults(self):
        fields = AS2ClientBuilder().fields
        assert fields.subject == "OpenPEPPOL AS2 message"
        assert fields.signing_algorithm is SigningAlgorithm.SHA256
        assert "$msg.sender.as2_id$" in fields.message_id_format
        assert fields.smp_client is None

    def test_business_document_from_bytes(self):
        builder = AS2ClientBuilder().set_business_document(b"<a/>")
        assert isinstance(builder.fields.business_document, ByteArrayResource)


class TestSendSynchronous:
    def test_round_trip(self, valid_builder, mock_as2_client, sender_id, receiver_id, document_type_id, process_id):
        response = valid_builder.send_synchronous()

        assert response is mock_as2_client.send_synchronous.return_value
        settings, request = sent(mock_as2_client)
        assert request.subject == "OpenPEPPOL AS2 message"

        envelope = parse_standard_business_document(request.data)
        assert envelope.sender == sender_id
        assert envelope.receiver == receiver_id
        assert envelope.document_type == document_type_id
        assert envelope.process == process_id
        assert envelope.business_message.findtext(f"{{{CBC_NS}}}ID") == "INV-0001"

    def test_client_settings(self, valid_builder, mock_as2_client, keystore_file, receiver_certificate):
        valid_builder.send_synchronous()
        settings, _ = sent(mock_as2_client)

        assert settings.key_store_path == keystore_file
        assert settings.key_store_password.get_secret_value() == "secret"
        assert settings.partnership_name == "APP_0001-APP_0002"
        assert settings.receiver_key_alias == "APP_0002"
        assert settings.destination_url == "https://ap.receiver.example.com/as2"
        assert settings.receiver_certificate == receiver_certificate
        assert settings.encrypt_algorithm is None
        assert settings.signing_algorithm is SigningAlgorithm.SHA256
        assert settings.mdn_options.as_header_value() == (
            "signed-receipt-protocol=required, pkcs7-signature; signed-receipt-micalg=required, sha-256"
        )

    def test_missing_key_store_fails_before_transport(self, valid_builder, mock_as2_client):
        valid_builder.set_pkcs12_key_store(None, "secret")

        with pytest.raises(AS2ClientBuilderError, match="key store"):
            valid_builder.send_synchronous()

        mock_as2_client.send_synchronous.assert_not_called()

    def test_permissive_handler_reports_every_error(self, valid_builder, mock_as2_client):
        handler = CollectingMessageHandler()
        valid_builder.set_message_handler(handler)
        valid_builder.set_pkcs12_key_store(None, None).set_sender_as2_email(None).set_peppol_process_id(None)

        with pytest.raises(AS2ClientBuilderValidationError) as exc_info:
            valid_builder.send_synchronous()

        messages = [issue.message for issue in exc_info.value.issues if issue.is_error]
        assert len(messages) == 4
        assert "No AS2 key store is defined" in messages[0]
        assert "The PEPPOL process ID is missing" in messages[-1]
        assert [issue.message for issue in handler.issues] == [issue.message for issue in exc_info.value.issues]
        mock_as2_client.send_synchronous.assert_not_called()

    def test_warnings_do_not_block(self, valid_builder, mock_as2_client):
        valid_builder.set_message_handler(LoggingMessageHandler()).set_sender_as2_email("not-an-email")
        valid_builder.send_synchronous()
        mock_as2_client.send_synchronous.assert_called_once()

    def test_invalid_xml_document(self, valid_builder, mock_as2_client):
        valid_builder.set_business_document(ByteArrayResource(b"<Invoice><unclosed>", path="broken.xml"))

        with pytest.raises(AS2ClientBuilderError, match="Failed to read business document 'broken.xml' as XML"):
            valid_builder.send_synchronous()

        mock_as2_client.send_synchronous.assert_not_called()

    def test_explicit_receiver_alias_kept(self, valid_builder, mock_as2_client):
        valid_builder.set_receiver_as2_key_alias("APP_ALIAS").send_synchronous()
        settings, _ = sent(mock_as2_client)
        assert settings.receiver_key_alias == "APP_ALIAS"

    def test_sequential_sends_reuse_builder(self, valid_builder, mock_as2_client, tmp_path):
        valid_builder.send_synchronous()
        second = tmp_path / "second.xml"
        second.write_bytes(b"<Invoice xmlns='urn:example'><ID>INV-0002</ID></Invoice>")
        valid_builder.set_business_document(second).send_synchronous()

        assert mock_as2_client.send_synchronous.call_count == 2
        first_request = mock_as2_client.send_synchronous.call_args_list[0].args[1]
        second_request = mock_as2_client.send_synchronous.call_args_list[1].args[1]
        first = parse_standard_business_document(first_request.data)
        again = parse_standard_business_document(second_request.data)
        assert first.instance_identifier != again.instance_identifier
        assert again.business_message.findtext("{urn:example}ID") == "INV-0002"


class TestSMPResolution:
    @pytest.fixture
    def unresolved_builder(self, valid_builder):
        return (
            valid_builder.set_receiver_as2_id(None)
            .set_receiver_as2_url(None)
            .set_receiver_certificate(None)
        )

    def test_receiver_resolved_from_smp(self, unresolved_builder, mock_as2_client, endpoint, receiver_certificate):
        smp = FakeSMPClient(result=endpoint)
        unresolved_builder.set_smp_client(smp).send_synchronous()

        settings, _ = sent(mock_as2_client)
        assert settings.destination_url == "https://smp-resolved.example.com/as2"
        assert settings.receiver_certificate == receiver_certificate
        assert settings.receiver_as2_id == "APP_0002"
        assert settings.receiver_key_alias == "APP_0002"
        assert smp.calls[0][3] == TransportProfile.AS2.value

    def test_explicit_url_wins_over_smp(self, unresolved_builder, mock_as2_client, endpoint):
        unresolved_builder.set_receiver_as2_url("https://explicit.example.com/as2")
        unresolved_builder.set_smp_client(FakeSMPClient(result=endpoint)).send_synchronous()

        settings, _ = sent(mock_as2_client)
        assert settings.destination_url == "https://explicit.example.com/as2"
        assert settings.receiver_as2_id == "APP_0002"

    def test_failed_lookup_then_missing_fields(self, unresolved_builder, mock_as2_client):
        unresolved_builder.set_message_handler(CollectingMessageHandler())
        unresolved_builder.set_smp_client(FakeSMPClient(result=None))

        with pytest.raises(AS2ClientBuilderValidationError) as exc_info:
            unresolved_builder.send_synchronous()

        issues = exc_info.value.issues
        assert issues[0].message.startswith("Failed to perform SMP lookup for receiver")
        errors = [issue.message for issue in issues if issue.is_error]
        assert errors == [
            "The AS2 receiver ID is missing",
            "The AS2 receiver key alias is missing",
            "The AS2 receiver URL (AS2 endpoint URL) is missing",
            "The receiver X.509 certificate is missing. Usually this is extracted from the SMP response",
        ]
        mock_as2_client.send_synchronous.assert_not_called()

    def test_fully_configured_builder_skips_lookup(self, valid_builder, mock_as2_client, endpoint):
        smp = FakeSMPClient(result=endpoint)
        valid_builder.set_smp_client(smp).send_synchronous()
        assert smp.calls == []

    def test_sml_zone_derives_client_per_send(self, unresolved_builder, monkeypatch, endpoint):
        created = []

        def fake_get_endpoint(self, participant_id, document_type_id, process_id, transport_profile):
            created.append(self.base_url)
            return endpoint

        monkeypatch.setattr(SMPClient, "get_endpoint", fake_get_endpoint)
        unresolved_builder._sml_config = SMPConfig(sml_zone="sml.example")

        unresolved_builder.send_synchronous()

        assert len(created) == 1
        assert created[0].endswith(".iso6523-actorid-upis.sml.example")
        assert unresolved_builder.fields.smp_client is None


class TestFromConfig:
    def test_seeds_fields(self, keystore_file):
        config = PeppolClientConfig(
            as2=AS2Config(subject="Custom", signing_algorithm=SigningAlgorithm.SHA512, user_agent="ua/1"),
            smp=SMPConfig(base_url="https://smp.example.com"),
            sender=SenderConfig(
                keystore_path=keystore_file,
                keystore_password=SecretStr("secret"),
                as2_id="APP_0001",
                email="ap@sender.example.com",
                key_alias="APP_0001",
                participant_id="iso6523-actorid-upis::9915:sender",
            ),
        )

        builder = AS2ClientBuilder.from_config(config)

        fields = builder.fields
        assert fields.subject == "Custom"
        assert fields.signing_algorithm is SigningAlgorithm.SHA512
        assert fields.key_store_path == keystore_file
        assert fields.key_store_password == "secret"
        assert fields.sender_as2_id == "APP_0001"
        assert fields.sender_participant_id == ParticipantIdentifier.with_default_scheme("9915:sender")
        assert isinstance(fields.smp_client, SMPClient)
        assert fields.smp_client.base_url == "https://smp.example.com"

    def test_setters_override_config(self):
        config = PeppolClientConfig(sender=SenderConfig(as2_id="APP_0001"))
        builder = AS2ClientBuilder.from_config(config).set_sender_as2_id("APP_9999")
        assert builder.fields.sender_as2_id == "APP_9999"

    def test_without_smp(self):
        builder = AS2ClientBuilder.from_config(PeppolClientConfig())
        assert builder.fields.smp_client is None
        assert builder.fields.key_store_password is None
