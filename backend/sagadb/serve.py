"""Run the SAGA API under uvicorn, configured from the environment."""

import logging
import os
from typing import Any, Dict

import uvicorn

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}

_SSL_ENV = {
    "SSL_CERTFILE": "ssl_certfile",
    "SSL_KEYFILE": "ssl_keyfile",
    "SSL_CA_CERTS": "ssl_ca_certs",
    "SSL_KEYFILE_PASSWORD": "ssl_keyfile_password",
}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def uvicorn_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "8000")),
        "reload": _flag("RELOAD"),
        "log_level": os.getenv("LOG_LEVEL", "info"),
        "proxy_headers": True,
        "forwarded_allow_ips": os.getenv("FORWARDED_ALLOW_IPS", "*"),
    }
    for env_name, option in _SSL_ENV.items():
        value = os.getenv(env_name)
        if value:
            options[option] = value

    workers = int(os.getenv("WEB_CONCURRENCY", "1"))
    if workers > 1:
        if options["reload"]:
            raise RuntimeError("RELOAD cannot be combined with WEB_CONCURRENCY > 1")
        options["workers"] = workers
        if _flag("SCHEDULER_ENABLED", "true"):
            # Each worker starts its own tickers; reminder cooldowns keep them idempotent.
            logger.warning(
                "Sweep tickers will run in every worker",
                extra={"workers": workers},
            )
    return options


def main() -> None:
    uvicorn.run("sagadb.main:app", **uvicorn_options())


if __name__ == "__main__":
    main()
