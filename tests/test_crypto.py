"""
Cipher service tests.
"""

from share_note.crypto import CipherService, decode_key
from share_note.utils import content_hash, truncate


def test_encrypt_decrypt_round_trip():
    cipher = CipherService()
    payload = cipher.encrypt('{"content": "<p>hi</p>"}')
    assert cipher.decrypt(payload) == '{"content": "<p>hi</p>"}'
    assert len(decode_key(payload.key)) == 16


def test_reused_key_is_kept():
    cipher = CipherService()
    first = cipher.encrypt("one")
    second = cipher.encrypt("two", first.key)
    assert second.key == first.key
    assert second.iv != first.iv
    assert cipher.decrypt(second) == "two"


def test_fresh_keys_differ():
    cipher = CipherService()
    assert cipher.encrypt("a").key != cipher.encrypt("a").key
    assert cipher.mint_filename() != cipher.mint_filename()


def test_content_hash_is_stable():
    assert content_hash("abc") == content_hash(b"abc")
    assert content_hash(b"abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"


def test_truncate():
    assert truncate("short", 200) == "short"
    assert truncate("x" * 250, 200) == "x" * 197 + "..."
