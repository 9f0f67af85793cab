import pytest

from channelgate.mac import normalize_mac


@pytest.mark.parametrize(
    "raw",
    [
        "aa-bb-cc-dd-ee-ff",
        "AA:BB:CC:DD:EE:FF",
        "aabb.ccdd.eeff",
        "aabbccddeeff",
        "  aa bb cc dd ee ff  ",
    ],
)
def test_normalizes_common_spellings(raw):
    assert normalize_mac(raw) == "AA:BB:CC:DD:EE:FF"


@pytest.mark.parametrize(
    "raw",
    ["", None, "AA:BB:CC:DD:EE", "AA:BB:CC:DD:EE:FF:00", "not a mac", "GG:HH:II:JJ:KK:LL"],
)
def test_rejects_wrong_length(raw):
    assert normalize_mac(raw) is None


def test_non_hex_characters_are_dropped_before_counting():
    # 'x' and 'z' are stripped, leaving exactly twelve hex digits
    assert normalize_mac("x00z11-22-33-44-55") == "00:11:22:33:44:55"


@pytest.mark.parametrize(
    "raw",
    ["aa-bb-cc-dd-ee-ff", "001122334455", "12:34", "zz", "0a:1b:2c:3d:4e:5f"],
)
def test_normalization_is_idempotent(raw):
    once = normalize_mac(raw)
    assert normalize_mac(once) == once
