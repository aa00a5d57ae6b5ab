"""
Payment and Shipping Descriptors

Payment and shipping data arrive as a plain string, a keyed object with
synonymous keys, a list of either, or nothing at all. Raw values are parsed
once into a tagged variant and a single recursive resolver extracts the
human label.
"""

from dataclasses import dataclass
import json
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

GENERIC_KEYS: Tuple[str, ...] = ("name", "label", "title", "method", "type")
PAYMENT_KEYS: Tuple[str, ...] = ("method", "billing")
SHIPPING_KEYS: Tuple[str, ...] = ("name", "carrier", "code")


@dataclass(frozen=True)
class Missing:
    """No usable value"""


@dataclass(frozen=True)
class Plain:
    """A bare string"""
    value: str


@dataclass(frozen=True)
class Keyed:
    """An object with named fields"""
    fields: Mapping[str, Any]


@dataclass(frozen=True)
class Listing:
    """A sequence of nested values"""
    items: Tuple[Any, ...]


Descriptor = Union[Missing, Plain, Keyed, Listing]


def parse_descriptor(raw: Any) -> Descriptor:
    """
    Parse a raw column value into a descriptor.

    Strings that hold a JSON object or array are decoded first.
    """
    if raw is None:
        return Missing()

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        text = raw.strip()
        if text[:1] in ("{", "["):
            try:
                return parse_descriptor(json.loads(text))
            except ValueError:
                pass
        return Plain(text) if text else Missing()

    if isinstance(raw, Mapping):
        return Keyed(raw)

    if isinstance(raw, Sequence):
        return Listing(tuple(raw))

    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return Plain(str(raw))

    return Missing()


def resolve_label(descriptor: Descriptor, priority_keys: Sequence[str] = ()) -> Optional[str]:
    """
    Extract a label from a descriptor.

    Keyed descriptors try ``priority_keys`` first, then the generic synonyms
    (name, label, title, method, type), then every remaining value in order.
    """
    if isinstance(descriptor, Plain):
        return descriptor.value or None

    if isinstance(descriptor, Keyed):
        for key in tuple(priority_keys) + GENERIC_KEYS:
            if key in descriptor.fields:
                label = resolve_label(parse_descriptor(descriptor.fields[key]))
                if label is not None:
                    return label
        for value in descriptor.fields.values():
            label = resolve_label(parse_descriptor(value))
            if label is not None:
                return label
        return None

    if isinstance(descriptor, Listing):
        for item in descriptor.items:
            label = resolve_label(parse_descriptor(item), priority_keys)
            if label is not None:
                return label
        return None

    return None


def payment_label(raw: Any) -> Optional[str]:
    """Label of a payment descriptor"""
    return resolve_label(parse_descriptor(raw), PAYMENT_KEYS)


def shipping_label(raw: Any) -> Optional[str]:
    """Label of a shipping descriptor"""
    return resolve_label(parse_descriptor(raw), SHIPPING_KEYS)
