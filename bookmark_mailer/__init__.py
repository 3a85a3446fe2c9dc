"""Weekly Raindrop.io bookmark digest mailer."""

__version__ = "1.0.0"
