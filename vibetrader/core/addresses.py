"""Solana address shape shared by text extraction and decision parsing."""
import re

BASE58_ALPHABET = "1-9A-HJ-NP-Za-km-z"

# Base58 (no 0, O, I, l), 32-64 chars
ADDRESS_PATTERN = rf"[{BASE58_ALPHABET}]{{32,64}}"
ADDRESS_RE = re.compile(rf"(?<![{BASE58_ALPHABET}]){ADDRESS_PATTERN}(?![{BASE58_ALPHABET}])")
ADDRESS_FULL_RE = re.compile(rf"^{ADDRESS_PATTERN}$")


def is_valid_address(value: str) -> bool:
    return bool(value) and ADDRESS_FULL_RE.match(value) is not None
