"""
Run the proxy under uvicorn.

PORT (default 3000) and HOST (default 0.0.0.0) come from the environment;
X-Forwarded-* headers from the load balancer are trusted.
"""
import os
import sys

import uvicorn

DEFAULT_PORT = 3000


def _port_from_env() -> int:
    raw = os.environ.get("PORT", str(DEFAULT_PORT))
    try:
        port = int(raw)
    except ValueError:
        raise SystemExit(f"PORT must be an integer, got {raw!r}")
    if not 0 < port < 65536:
        raise SystemExit(f"PORT out of range: {port}")
    return port


def main() -> None:
    uvicorn.run(
        "app.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=_port_from_env(),
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover
        print(f"Proxy failed to start: {exc}", file=sys.stderr)
        raise
