"""
Report sanitization: strips personally identifying data before a report
leaves the client.
"""

import hashlib
import re
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ui_resilience.models import ErrorReport

PATH_PLACEHOLDER = "<path>"

# Compared after lower-casing and removing '_' and '-'
PII_FIELDS = frozenset(
    {
        "email",
        "emailaddress",
        "phone",
        "phonenumber",
        "mobile",
        "password",
        "passwd",
        "name",
        "firstname",
        "lastname",
        "fullname",
        "username",
        "address",
        "streetaddress",
        "postcode",
        "zipcode",
        "ssn",
        "dateofbirth",
        "dob",
        "creditcard",
        "cardnumber",
        "cvv",
        "token",
        "accesstoken",
        "refreshtoken",
        "apikey",
        "secret",
        "authorization",
        "cookie",
        "ip",
        "ipaddress",
    }
)
USER_ID_FIELDS = frozenset({"userid", "uid", "accountid", "clientid", "customerid"})
SENSITIVE_QUERY_PARAMS = frozenset(
    {
        "token",
        "accesstoken",
        "idtoken",
        "refreshtoken",
        "apikey",
        "key",
        "password",
        "secret",
        "session",
        "sessionid",
        "sid",
        "auth",
        "code",
        "email",
        "signature",
        "sig",
    }
)

_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_BEARER = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/=-]{8,}")
_SECRET_ASSIGNMENT = re.compile(
    r"(?i)\b(api[_-]?key|access[_-]?token|token|password|secret)(\s*[:=]\s*)[^\s&\"',;]+"
)
_FS_PATH = re.compile(
    r"(?<![\w:/\\.])(?:[A-Za-z]:)?(?:[\\/][^\\/\s:()\"']+)+[\\/]([^\\/\s:()\"']+)"
)


def _normalize(field: str) -> str:
    return field.lower().replace("_", "").replace("-", "")


def hash_identifier(value: Any) -> str:
    """One-way hash for user identifiers."""
    digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
    return f"sha256:{digest[:32]}"


def sanitize_metadata(value: Any) -> Any:
    """Drop PII keys and hash identifier keys, recursively."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            normalized = _normalize(str(key))
            if normalized in USER_ID_FIELDS:
                cleaned[key] = hash_identifier(item) if item not in (None, "") else item
            elif normalized in PII_FIELDS:
                continue
            else:
                cleaned[key] = sanitize_metadata(item)
        return cleaned
    if isinstance(value, (list, tuple)):
        return [sanitize_metadata(item) for item in value]
    if isinstance(value, str):
        return scrub_text(value)
    return value


def sanitize_url(url: str) -> str:
    """Remove credentials, sensitive query parameters and the fragment."""
    if not url:
        return url
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return url

    netloc = parts.netloc
    if "@" in netloc and hostname:
        netloc = hostname if port is None else f"{hostname}:{port}"

    query = urlencode(
        [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if _normalize(key) not in SENSITIVE_QUERY_PARAMS
        ]
    )
    return urlunsplit((parts.scheme, netloc, parts.path, query, ""))


def sanitize_stack(stack: Optional[str]) -> Optional[str]:
    """Collapse filesystem paths in a stack trace to <path>/<file>."""
    if not stack:
        return stack
    return _FS_PATH.sub(lambda m: f"{PATH_PLACEHOLDER}/{m.group(1)}", stack)


def scrub_text(text: str) -> str:
    """Remove emails, auth headers and inline secrets from free text."""
    text = _EMAIL.sub("<email>", text)
    text = _BEARER.sub(lambda m: f"{m.group(1)} <redacted>", text)
    return _SECRET_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}<redacted>", text)


def sanitize_report(report: ErrorReport) -> ErrorReport:
    """Return a copy of the report that is safe to transmit."""
    failure = report.failure
    context = failure.context
    clean_context = context.model_copy(
        update={
            "url": sanitize_url(context.url),
            "client_id": hash_identifier(context.client_id) if context.client_id else "",
            "metadata": sanitize_metadata(context.metadata),
        }
    )
    clean_failure = failure.model_copy(
        update={
            "context": clean_context,
            "message": scrub_text(failure.message),
            "technical_message": scrub_text(failure.technical_message),
            "stack": sanitize_stack(
                scrub_text(failure.stack) if failure.stack else failure.stack
            ),
        }
    )
    return report.model_copy(update={"failure": clean_failure})
