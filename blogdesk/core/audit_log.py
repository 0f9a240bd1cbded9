"""Audit logging for security events."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .models import AuditEvent


class AuditLogger:
    """Append-only audit log for security events.

    Logs are stored in JSON Lines format, one complete JSON object per line.
    """

    def __init__(self, log_path: Path, max_age_days: int = 90):
        """Initialize audit logger.

        Args:
            log_path: Path to audit log file.
            max_age_days: Maximum age of log entries before cleanup.
        """
        self.log_path = log_path
        self.max_age_days = max_age_days

    def log(
        self,
        event: str,
        actor: str,
        ip: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log an audit event.

        Args:
            event: Event type (e.g., "login_success", "settings_update").
            actor: User id, email or "cron"/"system".
            ip: Client IP address.
            user_agent: Client user agent.
            details: Additional event-specific details.
        """
        entry = AuditEvent(
            event=event,
            actor=actor,
            ip=ip,
            user_agent=user_agent,
            details=details or {},
        )

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.model_dump(mode="json")) + "\n")

    def log_login_success(self, actor: str, ip: str, user_agent: str | None = None) -> None:
        self.log(event="login_success", actor=actor, ip=ip, user_agent=user_agent)

    def log_login_failed(
        self,
        actor: str,
        ip: str,
        user_agent: str | None = None,
        reason: str = "invalid_credentials",
    ) -> None:
        self.log(
            event="login_failed",
            actor=actor,
            ip=ip,
            user_agent=user_agent,
            details={"reason": reason},
        )

    def log_logout(self, actor: str, ip: str | None = None) -> None:
        self.log(event="logout", actor=actor, ip=ip)

    def log_settings_change(
        self,
        action: str,
        keys: list[str],
        actor: str,
        ip: str | None = None,
    ) -> None:
        """Log a settings write.

        Args:
            action: "update", "delete", "seed" or "visibility".
            keys: Affected setting keys.
            actor: User who made the change.
            ip: Client IP.
        """
        self.log(
            event=f"settings_{action}",
            actor=actor,
            ip=ip,
            details={"keys": keys},
        )

    def log_cron_run(self, job: str, details: dict[str, Any]) -> None:
        self.log(event=f"cron_{job}", actor="cron", details=details)

    def read_recent(self, limit: int = 100) -> list[dict]:
        """Read recent audit log entries.

        Returns:
            Up to ``limit`` entries, newest first. Unparseable lines are skipped.
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return list(reversed(entries[-limit:]))

    def cleanup_old_entries(self) -> int:
        """Remove entries older than max_age_days.

        Returns:
            Number of entries removed.
        """
        if not self.log_path.exists():
            return 0

        cutoff = datetime.now(timezone.utc) - timedelta(days=self.max_age_days)
        kept = []
        removed = 0

        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                    timestamp = datetime.fromisoformat(
                        entry.get("timestamp", "").replace("Z", "+00:00")
                    )
                except (json.JSONDecodeError, ValueError):
                    kept.append(line)
                    continue
                if timestamp >= cutoff:
                    kept.append(line)
                else:
                    removed += 1

        if removed:
            with open(self.log_path, "w", encoding="utf-8") as f:
                for line in kept:
                    f.write(line + "\n")

        return removed
