from bookmark_mailer.application.use_cases.send_weekly_digest import (
    DigestRunResult,
    DigestRunStats,
    SendWeeklyDigest,
)

__all__ = ["DigestRunResult", "DigestRunStats", "SendWeeklyDigest"]
