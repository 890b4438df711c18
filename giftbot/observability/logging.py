import json
import time

from giftbot.settings import settings

# Gift card codes are bearer secrets; chat text and raw gateway bodies may
# carry personal data
SENSITIVE_KEYS = {"codes", "text", "payload", "secret", "ipnRaw"}

# Masked down to a suffix so support can still match a code a buyer quotes
CODE_KEYS = {"codes"}


def _mask_code(code) -> str:
    s = str(code or "")
    return f"****{s[-4:]}" if len(s) > 4 else "****"


def _redact(key: str, value, inherited: bool = False):
    sensitive = inherited or key in SENSITIVE_KEYS
    if key in CODE_KEYS and isinstance(value, (list, tuple)):
        return [_mask_code(c) for c in value]
    if isinstance(value, dict):
        return {k: _redact(k, v, sensitive) for k, v in value.items()}
    if not sensitive:
        return value
    if isinstance(value, str) and value:
        return f"[REDACTED:{len(value)}chars]"
    if isinstance(value, (list, tuple)):
        return f"[REDACTED:{len(value)}items]"
    return value


def log(event: str, **fields):
    """One JSON object per line on stdout."""
    record = {"ts": int(time.time()), "event": event}
    if settings.ENABLE_LOG_REDACTION:
        fields = {k: _redact(k, v) for k, v in fields.items()}
    record.update(fields)
    print(json.dumps(record, ensure_ascii=False, default=str), flush=True)
