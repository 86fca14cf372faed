import string

from traceit.core.crypto import VERIFICATION_HASH_LENGTH, verification_hash
from traceit.core.ids import ALPHABET, new_id


def test_ids_are_short_and_url_safe():
    for _ in range(200):
        value = new_id()
        assert len(value) == 6
        assert set(value) <= set(ALPHABET)


def test_id_length_can_be_chosen():
    assert len(new_id(8)) == 8


def test_alphabet_has_64_url_safe_symbols():
    assert len(set(ALPHABET)) == 64
    assert set(ALPHABET) <= set(string.ascii_letters + string.digits + "_-")


def test_verification_hash_is_short_hex_and_deterministic():
    h = verification_hash("abc123", "Report", "2026-10-19 10:00:00.000000")
    assert len(h) == VERIFICATION_HASH_LENGTH
    assert set(h) <= set("0123456789abcdef")
    assert h == verification_hash("abc123", "Report", "2026-10-19 10:00:00.000000")


def test_verification_hash_depends_on_every_input():
    base = verification_hash("abc123", "Report", "2026-10-19 10:00:00.000000")
    assert verification_hash("abc124", "Report", "2026-10-19 10:00:00.000000") != base
    assert verification_hash("abc123", "Report!", "2026-10-19 10:00:00.000000") != base
    assert verification_hash("abc123", "Report", "2026-10-19 10:00:00.000001") != base
