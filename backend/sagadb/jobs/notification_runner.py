"""Notification sweep runner.

Safe to run from cron alongside the in-process ticker: every check skips
users who were reminded inside the cooldown window.
"""

from __future__ import annotations

from sagadb.apps.notifications.scheduler import run_notification_sweep


def run() -> dict:
    return run_notification_sweep()


if __name__ == "__main__":
    result = run()
    print("Notification sweep completed:", result)
