"""Structured JSON logging for command runs, with secret redaction.

Records flow through a bounded queue to a background listener. A
:class:`SecretRedactionFilter` sits on the queue handler so key material is
masked before a record leaves the calling thread.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import re
from datetime import datetime, timezone
from queue import Full, Queue
from typing import Final, Iterable, TextIO, override
from uuid import uuid4

from .errors import IdentityError

LOGGER = logging.getLogger(__name__)

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

REDACTED: Final[str] = "***"
_SECRET_KEYS: Final[frozenset[str]] = frozenset(
    {"private_key", "privatekey", "passphrase", "vault_passphrase", "secret"}
)
# Raw private keys and DER blobs are 64+ hex characters. Public keys are too,
# so they are only kept under the ``public_key`` field.
_LONG_HEX: Final[re.Pattern[str]] = re.compile(r"(?:0x)?[0-9a-fA-F]{64,}")
_SAFE_KEYS: Final[frozenset[str]] = frozenset({"public_key"})


def _scrub(value: object) -> object:
    if isinstance(value, str):
        return _LONG_HEX.sub(REDACTED, value)
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in _SECRET_KEYS else _scrub(item)
            for key, item in value.items()
        }
    return value


class SecretRedactionFilter(logging.Filter):
    """Mask secret-named ``extra`` fields and long hex runs in messages."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _LONG_HEX.sub(REDACTED, record.msg)
        if isinstance(record.args, dict):
            record.args = {key: _scrub(value) for key, value in record.args.items()}
        elif record.args:
            record.args = tuple(_scrub(arg) for arg in record.args)
        for key in list(vars(record)):
            if key in _RECORD_ATTRIBUTES or key in _SAFE_KEYS:
                continue
            if key.lower() in _SECRET_KEYS:
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, _scrub(getattr(record, key)))
        return True


class JsonFormatter(logging.Formatter):
    """Render one JSON object per record with ``extra`` fields under ``context``."""

    def __init__(self, *, default_trace_id: str | None = None) -> None:
        super().__init__()
        self._default_trace_id = default_trace_id

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "trace_id": getattr(record, "trace_id", None) or self._default_trace_id,
            "context": {
                key: value
                for key, value in vars(record).items()
                if key not in _RECORD_ATTRIBUTES and key != "trace_id"
            },
        }

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text

        return json.dumps(payload, default=str)


class BoundedQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that drops records instead of blocking when full.

    Preparing a record for the queue flattens its traceback into the message.
    An attached :class:`~ledger_identity.errors.IdentityError` is kept as its
    ``to_dict()`` payload in the ``identity_error`` field.
    """

    @override
    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        error = record.exc_info[1] if record.exc_info else None
        prepared = super().prepare(record)
        if isinstance(error, IdentityError):
            prepared.identity_error = error.to_dict()
        return prepared

    @override
    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.handleError(record)

    @override
    def handleError(self, record: logging.LogRecord) -> None:
        """Drop the record silently."""

        return


def configure_structured_logging(
    logger: logging.Logger,
    *,
    trace_id: str | None = None,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    queue_size: int = 1024,
) -> logging.handlers.QueueListener:
    """Attach a redacting JSON queue pipeline to ``logger``.

    Args:
        logger: Target logger to configure.
        trace_id: Trace identifier stamped on every record that does not set
            its own. A random one is generated when omitted.
        level: Logging verbosity level. Defaults to ``logging.INFO``.
        stream: Destination for JSON lines. Defaults to ``sys.stderr``.
        queue_size: Records buffered before new ones are dropped.

    Returns:
        The started queue listener. Pass it to :func:`shutdown_listeners`.
    """
    logger.setLevel(level)

    record_queue: Queue[logging.LogRecord] = Queue(maxsize=queue_size)
    queue_handler = BoundedQueueHandler(record_queue)
    queue_handler.addFilter(SecretRedactionFilter())
    logger.addHandler(queue_handler)

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setFormatter(JsonFormatter(default_trace_id=trace_id or str(uuid4())))

    listener = logging.handlers.QueueListener(record_queue, stream_handler)
    listener.start()
    return listener


def shutdown_listeners(listeners: Iterable[logging.handlers.QueueListener]) -> None:
    """Stop all queue listeners while suppressing shutdown errors."""
    for listener in listeners:
        try:
            listener.stop()
        except Exception as exc:  # pragma: no cover - defensive logging cleanup
            LOGGER.warning("Failed to stop logging listener", exc_info=exc)
