import re

MAC_LENGTH = 12

_NON_HEX = re.compile(r"[^A-F0-9]")


def normalize_mac(value):
    """Canonical ``AA:BB:CC:DD:EE:FF`` form, or None when not a MAC."""
    if not value:
        return None
    raw = _NON_HEX.sub("", str(value).upper())
    if len(raw) != MAC_LENGTH:
        return None
    return ":".join(raw[i:i + 2] for i in range(0, MAC_LENGTH, 2))
