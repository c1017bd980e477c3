"""Capture field contract and content hashing.

Leaders report a partial set of the five voter fields below. Source headers
and JSON keys arrive in Spanish or English and in arbitrary case, so every
entry point maps them through the alias table before normalizing values.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Callable, Mapping, Tuple

from .errors import ValidationError

Normalizer = Callable[[object | None], str | None]

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(value: object | None) -> str | None:
    """Strip, collapse whitespace runs and upper-case. Empty values become ``None``."""

    if value is None:
        return None
    token = _WHITESPACE_RE.sub(" ", str(value)).strip()
    if not token:
        return None
    return token.upper()


def _normalize_email(value: object | None) -> str | None:
    if value is None:
        return None
    token = _WHITESPACE_RE.sub("", str(value))
    return token.upper() or None


@dataclass(frozen=True)
class FieldSpec:
    """Metadata describing a reported voter field."""

    name: str
    description: str
    aliases: Tuple[str, ...] = ()
    normalizer: Normalizer = normalize_text

    def headers(self) -> Tuple[str, ...]:
        return (self.name, *self.aliases)


# Order is part of the content hash.
CAPTURE_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        name="first_name",
        description="Given name(s) as reported.",
        aliases=("nombre", "nombres", "name"),
    ),
    FieldSpec(
        name="last_name",
        description="Family name(s) as reported.",
        aliases=("apellido", "apellidos", "surname"),
    ),
    FieldSpec(
        name="address",
        description="Street address.",
        aliases=("direccion",),
    ),
    FieldSpec(
        name="phone",
        description="Contact phone number.",
        aliases=("celular", "telefono"),
    ),
    FieldSpec(
        name="email",
        description="Contact email.",
        aliases=("correo",),
        normalizer=_normalize_email,
    ),
)

# Keys identifying who reported whom in flat batch records.
RECORD_KEY_ALIASES: Mapping[str, Tuple[str, ...]] = {
    "leader_id": ("leaderid", "lider", "lider_id", "cedula_lider"),
    "reported_id": ("reportedid", "cc", "cedula", "identificacion", "voter_id", "votante_id"),
}


def normalize_header(header: str) -> str:
    """Normalize a key for comparison (case/space/underscore agnostic)."""

    token = str(header).strip().lstrip("\ufeff").lower()
    for char in (" ", "-", "."):
        token = token.replace(char, "_")
    return token


def get_field_names() -> Tuple[str, ...]:
    return tuple(spec.name for spec in CAPTURE_FIELDS)


def get_alias_map() -> dict[str, str]:
    """Map normalized header tokens to canonical field names (includes aliases)."""

    mapping: dict[str, str] = {}
    for spec in CAPTURE_FIELDS:
        for header in spec.headers():
            mapping[normalize_header(header)] = spec.name
    return mapping


def get_record_key_map() -> dict[str, str]:
    mapping: dict[str, str] = {}
    for canonical, aliases in RECORD_KEY_ALIASES.items():
        for header in (canonical, *aliases):
            mapping[normalize_header(header)] = canonical
    return mapping


def normalize_fields(payload: Mapping[str, object] | None) -> dict[str, str]:
    """
    Map raw keys onto canonical field names and normalize values.

    Unknown keys are ignored and empty values dropped, so the result only holds
    fields that carry data.
    """

    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError("fields must be an object of reported values.")

    alias_map = get_alias_map()
    specs = {spec.name: spec for spec in CAPTURE_FIELDS}
    normalized: dict[str, str] = {}
    for raw_key, value in payload.items():
        canonical = alias_map.get(normalize_header(raw_key))
        if canonical is None:
            continue
        if value is not None and not isinstance(value, (str, int, float)):
            raise ValidationError(f"Field '{raw_key}' must be a scalar value.")
        cleaned = specs[canonical].normalizer(value)
        if cleaned is not None:
            normalized[canonical] = cleaned
    return normalized


def compute_content_hash(normalized: Mapping[str, object | None]) -> str:
    """SHA-256 of ``field=value`` pairs joined by ``|`` in contract order."""

    parts = [f"{name}={normalized.get(name) or ''}" for name in get_field_names()]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def normalize_identifier(value: object | None, *, label: str = "identifier", max_length: int = 32) -> str:
    """Validate an entity identifier: non-empty, no inner whitespace, bounded length."""

    if value is None or isinstance(value, bool):
        raise ValidationError(f"{label} is required.")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, (str, int)):
        raise ValidationError(f"{label} must be a string.")
    token = str(value).strip()
    if not token:
        raise ValidationError(f"{label} is required.")
    if _WHITESPACE_RE.search(token):
        raise ValidationError(f"{label} must not contain whitespace.")
    if len(token) > max_length:
        raise ValidationError(f"{label} must be at most {max_length} characters.")
    return token


def fields_equal(left: Mapping[str, object | None], right: Mapping[str, object | None]) -> bool:
    return all((left.get(name) or None) == (right.get(name) or None) for name in get_field_names())
