"""Entry point for the payreq Textual app."""

from __future__ import annotations

import locale
import logging
from pathlib import Path

from payreq.config import DEBUG_LOG_PATH
from payreq.payments_app import PaymentsApp


def configure_logging(path: str = DEBUG_LOG_PATH) -> None:
    """Send debug records to a file; the terminal belongs to the app."""
    log_file = Path(path)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root = logging.getLogger("payreq")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)


def main() -> None:
    """Run the Textual application."""
    configure_logging()
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        # Fall back to code point order for project names.
        pass
    PaymentsApp().run()


if __name__ == "__main__":
    main()
