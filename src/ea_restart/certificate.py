"""Restart certificates: canonical JSON with provenance.

Canonicalisation is performed with ``sort_keys=True`` and compact separators
so that hashing is stable across platforms. The hash domain excludes the
top-level ``provenance`` key, so provenance can be refreshed without
perturbing the canonical payload. When the environment variable named by
``hmac_env`` holds a key, an HMAC-SHA256 of the payload is recorded as well.
"""

from __future__ import annotations

import datetime
import hashlib
import hmac
import json
import os
import pathlib
from typing import Any, Dict, Mapping, Optional, Tuple

CANONICAL_SEPARATORS = (",", ":")
CANONICAL_SORT_KEYS = True
CANONICAL_EXCLUDE = ("provenance",)
HMAC_ENV = "EA_RESTART_HMAC_KEY"

CERTIFICATE_UNIT = "restart_certificate"
CERTIFICATE_VERSION = "0.1"


def stable_dumps(data: object) -> str:
    """Return the canonical JSON representation for *data*."""

    return json.dumps(
        data,
        sort_keys=CANONICAL_SORT_KEYS,
        separators=CANONICAL_SEPARATORS,
        ensure_ascii=False,
    )


def sha256_hex(payload: str) -> str:
    return hashlib.sha256(payload.encode()).hexdigest()


def hmac_sha256_hex(payload: str, key: str) -> str:
    return hmac.new(key.encode(), payload.encode(), hashlib.sha256).hexdigest()


def canonical_payload(document: Mapping) -> str:
    """Serialise *document* into its canonical form excluding provenance."""

    payload = {k: v for k, v in document.items() if k not in CANONICAL_EXCLUDE}
    return stable_dumps(payload)


def compute_hashes(canon: str, hmac_key: Optional[str]) -> Tuple[str, Optional[str]]:
    sha = sha256_hex(canon)
    hm = hmac_sha256_hex(canon, hmac_key) if hmac_key else None
    return sha, hm


def build_certificate(
    report_payload: Mapping[str, Any],
    *,
    input_path: Optional[pathlib.Path] = None,
    key_id: Optional[str] = None,
    hmac_env: str = HMAC_ENV,
) -> Dict[str, Any]:
    """Wrap a restart report payload into a certificate document with provenance."""

    document: Dict[str, Any] = {
        "unit": CERTIFICATE_UNIT,
        "version": CERTIFICATE_VERSION,
        "input_file": None if input_path is None else str(input_path),
        "report": dict(report_payload),
    }
    sha, hm = compute_hashes(canonical_payload(document), os.getenv(hmac_env))
    document["provenance"] = {
        "sha256": sha,
        **({"hmac": hm} if hm else {}),
        **({"key_id": key_id} if key_id else {}),
        "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "canon": {
            "separators": list(CANONICAL_SEPARATORS),
            "sort_keys": CANONICAL_SORT_KEYS,
            "exclude": list(CANONICAL_EXCLUDE),
        },
    }
    return document


def write_certificate(document: Mapping[str, Any], path: pathlib.Path) -> str:
    """Write *document* to ``path`` and return its SHA-256 claim."""

    path = pathlib.Path(path)
    path.write_text(json.dumps(document, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return document["provenance"]["sha256"]


def verify_certificate(path: pathlib.Path, *, hmac_env: str = HMAC_ENV) -> Dict[str, object]:
    """Check that the stored provenance claims match the canonical payload."""

    document = json.loads(pathlib.Path(path).read_text(encoding="utf-8"))
    provenance = document.get("provenance") or {}
    claim = provenance.get("sha256")
    claim_hmac = provenance.get("hmac")
    sha, hm = compute_hashes(canonical_payload(document), os.getenv(hmac_env))
    return {
        "sha256_matches": claim == sha,
        "hmac_matches": None if claim_hmac is None else claim_hmac == hm,
        "sha256_actual": sha,
        "sha256_claimed": claim,
    }
