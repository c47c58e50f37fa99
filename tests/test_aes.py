import asyncio

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from src.resolver import aes, config
from src.resolver.errors import DecryptionFailure

KEY = "kiemtienmua911ca"
RIGHT_IV = "1234567890oiuytr"
PLAINTEXT = '{"source":"https:\\/\\/cdn.example.com\\/hls\\/abc\\/master.m3u8","title":"Episode 1","tracks":[]}'


def encrypt_hex(plaintext, key=KEY, iv=RIGHT_IV):
    padder = padding.PKCS7(128).padder()
    data = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key.encode()), modes.CBC(iv.encode())).encryptor()
    return (encryptor.update(data) + encryptor.finalize()).hex()


def wrong_iv(n):
    """Hex IV that garbles the first plaintext byte into a control character."""
    delta = bytes([0x60 + n]) + bytes(15)
    return bytes(a ^ b for a, b in zip(RIGHT_IV.encode(), delta)).hex()


def test_decrypt_hex():
    assert aes.decrypt_hex(encrypt_hex(PLAINTEXT), KEY, RIGHT_IV) == PLAINTEXT


def test_decrypt_hex_rejects_bad_input():
    with pytest.raises(DecryptionFailure):
        aes.decrypt_hex("zz", KEY, RIGHT_IV)
    with pytest.raises(DecryptionFailure):
        aes.decrypt_hex("abcd", KEY, RIGHT_IV)                    # not a whole block
    with pytest.raises(DecryptionFailure):
        aes.decrypt_hex(encrypt_hex(PLAINTEXT), "short", RIGHT_IV)
    with pytest.raises(DecryptionFailure):
        aes.decrypt_hex(encrypt_hex(PLAINTEXT), KEY, "tiny")
    with pytest.raises(DecryptionFailure):
        aes.decrypt_hex(encrypt_hex(PLAINTEXT), "0000000000000000", RIGHT_IV)


def test_wrong_iv_is_rejected():
    with pytest.raises(DecryptionFailure):
        aes.decrypt_hex(encrypt_hex(PLAINTEXT), KEY, wrong_iv(0))


def test_format_characters_are_valid_plaintext():
    # NBSP, line separator, zero-width space
    plaintext = '{"source":"https:\\/\\/cdn.example.com\\/v.m3u8","title":"Episode' + "\u00a01\u2028\u200bPart 2" + '"}'
    assert aes.decrypt_hex(encrypt_hex(plaintext), KEY, RIGHT_IV) == plaintext
    result = aes.resolve(encrypt_hex(plaintext), KEY, [RIGHT_IV])
    assert result.success
    assert result.plaintext == plaintext


# the default IVs other than the one used to encrypt
OTHER_DEFAULT_IVS = [iv for iv in config.AES_IVS if iv != RIGHT_IV]


def test_other_default_iv_decrypts_cleanly_but_is_skipped():
    """A wrong IV garbles only the first block: padding is fine, text still printable."""
    garbled = aes.decrypt_hex(encrypt_hex(PLAINTEXT), KEY, OTHER_DEFAULT_IVS[0])
    assert garbled != PLAINTEXT
    assert garbled[16:] == PLAINTEXT[16:]

    result = aes.resolve(encrypt_hex(PLAINTEXT), KEY, [OTHER_DEFAULT_IVS[0], RIGHT_IV])
    assert result.success
    assert result.iv == RIGHT_IV
    assert result.attempts[0].succeeded is False
    assert result.attempts[0].plaintext is None
    assert result.extracted_url == "https://cdn.example.com/hls/abc/master.m3u8"


@pytest.mark.parametrize("position", range(len(OTHER_DEFAULT_IVS) + 1))
def test_correct_iv_found_at_any_position(position):
    ivs = list(OTHER_DEFAULT_IVS)
    ivs.insert(position, RIGHT_IV)
    result = aes.resolve(encrypt_hex(PLAINTEXT), KEY, ivs)
    assert result.success
    assert result.iv == RIGHT_IV
    assert len(result.attempts) == position + 1
    assert [a.succeeded for a in result.attempts] == [False] * position + [True]
    assert result.extracted_url == "https://cdn.example.com/hls/abc/master.m3u8"
    assert result.is_stream_url


def test_second_default_iv_found_with_defaults():
    iv = config.AES_IVS[1]
    result = aes.resolve(encrypt_hex(PLAINTEXT, iv=iv))
    assert result.success
    assert result.iv == iv
    assert len(result.attempts) == 2


def test_plaintext_without_payload_fails():
    result = aes.resolve(encrypt_hex("nothing to see in this one"), KEY, [RIGHT_IV])
    assert not result.success
    assert "neither JSON" in result.attempts[0].error


def test_hex_iv_candidates():
    hex_iv = RIGHT_IV.encode().hex()
    result = aes.resolve(encrypt_hex(PLAINTEXT), KEY, [hex_iv])
    assert result.success
    assert result.iv == hex_iv


def test_all_ivs_fail():
    result = aes.resolve(encrypt_hex(PLAINTEXT), KEY, [wrong_iv(0), wrong_iv(1)])
    assert not result.success
    assert len(result.attempts) == 2
    assert result.error
    d = result.to_dict()
    assert d["attemptCount"] == 2
    assert "plaintext" not in d


def test_defaults_come_from_config():
    assert config.AES_KEY == KEY
    assert config.AES_IVS[0] == RIGHT_IV
    result = aes.resolve(encrypt_hex(PLAINTEXT))
    assert result.success
    assert result.to_dict()["extractedUrl"].endswith("master.m3u8")


def test_extract_url_patterns():
    assert aes.extract_url('{"file":"https://a.com/v.mp4"}') == "https://a.com/v.mp4"
    assert aes.extract_url('{"hls":"https:\\/\\/a.com\\/x"}') == "https://a.com/x"
    assert aes.extract_url("nothing here") is None


class FakeFetcher:
    def __init__(self, body=None, delay=0, error=None):
        self.body = body
        self.delay = delay
        self.error = error
        self.requested = []

    async def fetch_text(self, url, **kwargs):
        self.requested.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.body


def test_resolve_remote():
    fetcher = FakeFetcher(body=encrypt_hex(PLAINTEXT) + "\n")
    result = asyncio.run(aes.resolve_remote("https://host/api/v1/video?id=x", fetcher, KEY, [RIGHT_IV]))
    assert result.success
    assert fetcher.requested == ["https://host/api/v1/video?id=x"]


def test_resolve_remote_timeout():
    fetcher = FakeFetcher(body=encrypt_hex(PLAINTEXT), delay=1)
    result = asyncio.run(aes.resolve_remote("https://host/api", fetcher, KEY, [RIGHT_IV], timeout=0.05))
    assert not result.success
    assert result.error == "timeout"


def test_resolve_remote_fetch_error_and_non_hex_body():
    result = asyncio.run(aes.resolve_remote("https://host/api", FakeFetcher(error=OSError("refused"))))
    assert not result.success
    assert "refused" in result.error

    result = asyncio.run(aes.resolve_remote("https://host/api", FakeFetcher(body="<html>blocked</html>")))
    assert not result.success
    assert result.error == "response is not hex ciphertext"
