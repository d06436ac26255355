"""Structured logging with secret redaction.

Provides JSON-formatted logs with:
- Correlation IDs (request_id, conversation_id)
- Automatic secret redaction for API keys, wallet keys, tokens
"""
import logging
import sys
import json
import re
from datetime import datetime, timezone

# === SECRET REDACTION PATTERNS ===

SECRET_PATTERNS = [
    # OpenAI API keys (sk-... including sk-proj-...)
    (
        r'\bsk-[a-zA-Z0-9_-]{20,}\b',
        '***OPENAI_KEY_REDACTED***'
    ),
    # JWT tokens (eyJ...)
    (
        r'\beyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\b',
        '***JWT_REDACTED***'
    ),
    # Solana 64-byte secret keys in base58 (86-88 chars; public keys are <= 44)
    (
        r'\b[1-9A-HJ-NP-Za-km-z]{86,88}\b',
        '***WALLET_KEY_REDACTED***'
    ),
    # Generic tokens: token=value, bearer token, etc.
    (
        r'(?i)(bearer\s+|token["\']?\s*[:=]\s*["\']?)([a-zA-Z0-9_\-\.\/+]{20,})["\']?',
        r'\1***TOKEN_REDACTED***'
    ),
    # Environment variable format (JUPITER_API_KEY=value, SOLANA_PRIVATE_KEY=value, etc.)
    (
        r'(?i)(API_[A-Z_]*KEY|[A-Z_]*_API_KEY|[A-Z_]*SECRET|[A-Z_]*PRIVATE_KEY)\s*=\s*([a-zA-Z0-9_\-\.\/+\[\], ]{16,})',
        r'\1=***REDACTED***'
    ),
    # API keys: api_key=value, x-api-key: value, etc.
    (
        r'(?i)(x-api-key|api[_-]?key|api[_-]?secret|secret[_-]?key)["\']?\s*[:=]\s*["\']?([a-zA-Z0-9_\-\.\/+]{16,})["\']?',
        r'\1=***REDACTED***'
    ),
]

_COMPILED_PATTERNS = [(re.compile(pattern), replacement) for pattern, replacement in SECRET_PATTERNS]


def redact_secrets(text: str) -> str:
    """Redact secrets from text using pattern matching."""
    if not text:
        return text

    result = str(text)
    for pattern, replacement in _COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


class SecretRedactionFilter(logging.Filter):
    """Logging filter that redacts secrets from log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_secrets(str(record.msg))

        # Only strings are redacted so %d/%f format specifiers keep working
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: redact_secrets(v) if isinstance(v, str) else v
                               for k, v in record.args.items()}
            elif isinstance(record.args, (tuple, list)):
                record.args = tuple(
                    redact_secrets(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter with correlation IDs."""

    def format(self, record):
        message = redact_secrets(record.getMessage())

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "module": record.module,
            "function": record.funcName,
        }

        for attr in ("request_id", "conversation_id", "event", "elapsed_ms", "error_class"):
            value = getattr(record, attr, None)
            if value:
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = redact_secrets(self.formatException(record.exc_info))

        return json.dumps(log_data)


def setup_logging(level: str = "INFO"):
    """Setup structured JSON logging with secret redaction on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(SecretRedactionFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # httpx logs full request URLs (query strings included) at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger (secret redaction is applied by the root handler)."""
    return logging.getLogger(name)
