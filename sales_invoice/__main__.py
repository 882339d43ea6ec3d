"""Module entrypoint for running the invoice server."""

from __future__ import annotations

import logging
import os
import sys

from .config import env_int
from .server import DependencyError, run


def main() -> None:
    logging.basicConfig(
        level=os.getenv("INVOICE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    host = os.getenv("INVOICE_HOST", "0.0.0.0")
    port = env_int("INVOICE_PORT", 3000)
    try:
        run(host, port)
    except DependencyError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
