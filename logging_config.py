"""
Custom logging configuration for uvicorn that keeps passport data and client
IP addresses out of the logs.
"""
import hashlib
import logging
import re
from typing import Any, Dict

import config

_IP_RE = re.compile(r"\b(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})\b")
# DG1/SOD/certificate payloads: long runs of hex or Base64.
_BLOB_RE = re.compile(r'(?:0x)?[0-9a-fA-F]{64,}|[A-Za-z0-9+/]{80,}={0,2}')


def _hash_ip(ip: str) -> str:
    return "user-" + hashlib.sha256(ip.encode()).hexdigest()[:12]


class SensitiveDataFilter(logging.Filter):
    """Hash client IPs and redact binary passport payloads from log records."""

    @staticmethod
    def _scrub(text: str) -> str:
        text = _IP_RE.sub(lambda m: _hash_ip(m.group(1)), text)
        return _BLOB_RE.sub(lambda m: f"<redacted {len(m.group(0))} chars>", text)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self._scrub(a) if isinstance(a, str) else a for a in record.args)
        return True


LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "sensitive": {
            "()": SensitiveDataFilter,
        },
    },
    "formatters": {
        "default": {
            "()": "uvicorn.logging.DefaultFormatter",
            "fmt": "%(levelprefix)s %(name)s: %(message)s",
            "use_colors": None,
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": '%(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "filters": ["sensitive"],
        },
        "access": {
            "formatter": "access",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "filters": ["sensitive"],
        },
    },
    "loggers": {
        "": {
            "handlers": ["default"],
            "level": config.LOG_LEVEL,
        },
        "uvicorn": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.error": {
            "level": "INFO",
        },
        "uvicorn.access": {
            "handlers": ["access"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
