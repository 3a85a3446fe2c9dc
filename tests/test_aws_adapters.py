"""Tests for the SSM Parameter Store reader and the SES mailer."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from bookmark_mailer.adapters.aws import (
    OutboundEmail,
    ParameterStore,
    SesMailer,
)
from bookmark_mailer.domain.exceptions import ConfigurationError, ErrorKind, MailDeliveryError
from bookmark_mailer.domain.models.digest import DigestDocument


def _ssm_client(pages: list[dict]) -> MagicMock:
    client = MagicMock()
    client.get_paginator.return_value.paginate.return_value = pages
    return client


def _client_error(code: str, message: str = "boom", operation: str = "SendEmail") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class TestParameterStore(unittest.TestCase):
    def test_reads_all_pages_keyed_by_leaf(self):
        client = _ssm_client(
            [
                {"Parameters": [{"Name": "/dropcast/config/raindrop-api-token", "Value": "tok"}]},
                {
                    "Parameters": [
                        {"Name": "/dropcast/config/email-from", "Value": "from@example.com"},
                        {"Name": "/dropcast/config/email-to", "Value": "to@example.com"},
                    ]
                },
            ]
        )
        store = ParameterStore(client=client)

        params = store.get_digest_parameters("/dropcast/config")

        assert params.api_token == "tok"
        assert params.email_from == "from@example.com"
        assert params.email_to == "to@example.com"
        client.get_paginator.assert_called_once_with("get_parameters_by_path")
        client.get_paginator.return_value.paginate.assert_called_once_with(
            Path="/dropcast/config", Recursive=True, WithDecryption=True
        )

    def test_missing_keys_are_none(self):
        store = ParameterStore(client=_ssm_client([{"Parameters": []}]))
        params = store.get_digest_parameters("/dropcast/config")
        assert params.api_token is None
        assert params.email_to is None

    def test_client_error_becomes_configuration_error(self):
        client = MagicMock()
        client.get_paginator.return_value.paginate.side_effect = _client_error(
            "AccessDeniedException", operation="GetParametersByPath"
        )
        with pytest.raises(ConfigurationError) as ctx:
            ParameterStore(client=client).get_parameters_by_path("/dropcast/config")
        assert ctx.value.details == {"path": "/dropcast/config"}

    def test_client_is_created_lazily(self):
        with patch("bookmark_mailer.adapters.aws.parameter_store.boto3.client") as factory:
            store = ParameterStore(region="ap-northeast-1")
            factory.assert_not_called()
            factory.return_value = _ssm_client([])
            store.get_parameters_by_path("/x")
        factory.assert_called_once_with("ssm", region_name="ap-northeast-1")


class TestParameterStoreAsync(unittest.IsolatedAsyncioTestCase):
    async def test_async_variant(self):
        client = _ssm_client([{"Parameters": [{"Name": "/p/email-to", "Value": "to@example.com"}]}])
        params = await ParameterStore(client=client).aget_digest_parameters("/p")
        assert params.email_to == "to@example.com"


class TestSesMailer(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.client.send_email.return_value = {"MessageId": "msg-123"}
        self.mailer = SesMailer(
            from_addr="sender@example.com",
            to_addr="reader@example.com",
            client=self.client,
        )

    def test_missing_addresses_are_configuration_errors(self):
        with pytest.raises(ConfigurationError):
            SesMailer(from_addr="", to_addr="reader@example.com")
        with pytest.raises(ConfigurationError):
            SesMailer(from_addr="sender@example.com", to_addr="")

    def test_send_email_plain_text_utf8(self):
        result = self.mailer.send_email(OutboundEmail(subject="件名", body="本文"))

        assert result.success is True
        assert result.message_id == "msg-123"
        assert result.to_addr == "reader@example.com"
        self.client.send_email.assert_called_once_with(
            Source="sender@example.com",
            Destination={"ToAddresses": ["reader@example.com"]},
            Message={
                "Subject": {"Data": "件名", "Charset": "UTF-8"},
                "Body": {"Text": {"Data": "本文", "Charset": "UTF-8"}},
            },
        )

    def test_per_message_addresses_override_defaults(self):
        result = self.mailer.send_email(
            OutboundEmail(subject="s", body="b", from_addr="a@example.com", to_addr="b@example.com")
        )
        assert result.from_addr == "a@example.com"
        assert self.client.send_email.call_args.kwargs["Destination"] == {
            "ToAddresses": ["b@example.com"]
        }

    def test_blank_subject_or_body(self):
        for email in (OutboundEmail(subject=" ", body="b"), OutboundEmail(subject="s", body="")):
            with pytest.raises(MailDeliveryError) as ctx:
                self.mailer.send_email(email)
            assert ctx.value.kind == ErrorKind.MAIL_DELIVERY_ERROR
        self.client.send_email.assert_not_called()

    def test_known_ses_error_codes(self):
        self.client.send_email.side_effect = _client_error("MessageRejected", "Email address is not verified.")
        with pytest.raises(MailDeliveryError) as ctx:
            self.mailer.send_email(OutboundEmail(subject="s", body="b"))
        assert ctx.value.details == {"code": "MessageRejected"}
        assert "rejected" in ctx.value.message.lower()

    def test_unknown_ses_error_code_keeps_detail(self):
        self.client.send_email.side_effect = _client_error("SomethingNew", "odd failure")
        with pytest.raises(MailDeliveryError) as ctx:
            self.mailer.send_email(OutboundEmail(subject="s", body="b"))
        assert ctx.value.message == "Failed to send email: odd failure"

    def test_botocore_error(self):
        self.client.send_email.side_effect = EndpointConnectionError(
            endpoint_url="https://email.us-east-1.amazonaws.com"
        )
        with pytest.raises(MailDeliveryError) as ctx:
            self.mailer.send_email(OutboundEmail(subject="s", body="b"))
        assert ctx.value.details["code"] == "EndpointConnectionError"

    def test_send_digest(self):
        digest = DigestDocument(
            subject="週次ブックマークダイジェスト - 2024/03/05",
            body="本文",
            record_count=0,
            to_addr="digest@example.com",
        )
        result = self.mailer.send_digest(digest)
        assert result.subject == digest.subject
        assert result.to_addr == "digest@example.com"

    def test_send_test_email(self):
        result = self.mailer.send_test_email()
        body = self.client.send_email.call_args.kwargs["Message"]["Body"]["Text"]["Data"]
        assert result.subject.startswith("Bookmark digest test message - ")
        assert "sender@example.com" in body
        assert "reader@example.com" in body


class TestSesMailerAsync(unittest.IsolatedAsyncioTestCase):
    async def test_async_send_digest(self):
        client = MagicMock()
        client.send_email.return_value = {"MessageId": "async-1"}
        mailer = SesMailer(from_addr="s@example.com", to_addr="r@example.com", client=client)

        result = await mailer.asend_digest(DigestDocument(subject="s", body="b", record_count=1))

        assert result.message_id == "async-1"
