"""AWS adapters: Parameter Store for secrets, SES for mail delivery."""

from bookmark_mailer.adapters.aws.parameter_store import DigestParameters, ParameterStore
from bookmark_mailer.adapters.aws.ses_mailer import OutboundEmail, SendResult, SesMailer

__all__ = ["DigestParameters", "OutboundEmail", "ParameterStore", "SendResult", "SesMailer"]
