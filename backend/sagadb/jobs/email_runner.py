"""Email delivery runner for notifications that have not been mailed yet."""

from __future__ import annotations

from sagadb.apps.notifications.scheduler import run_email_sweep


def run() -> dict:
    return run_email_sweep()


if __name__ == "__main__":
    result = run()
    print("Email sweep completed:", result)
