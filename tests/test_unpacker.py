from src.resolver import unpacker
from src.resolver.base import PackedScriptBlock

from tests.fixtures import packed_script as packed


def test_detect():
    assert unpacker.detect(packed("0", 10, 1, "x"))
    assert unpacker.detect("function(p, a, c, k, e, r){}")
    assert not unpacker.detect("function(a,b){return a+b}")


def test_base_encode():
    assert unpacker.base_encode(0, 36) == "0"
    assert unpacker.base_encode(35, 36) == "z"
    assert unpacker.base_encode(36, 36) == "10"
    assert unpacker.base_encode(61, 62) == "Z"
    assert unpacker.base_encode(62, 62) == "10"


def test_basic_fixture():
    assert unpacker.unpack(packed("0 1 2", 36, 3, "foo|bar|baz")) == "foo bar baz"


def test_radix_36_long_dictionary():
    words = [f"word{i}" for i in range(40)]
    # 36 -> "10", 11 -> "b", 35 -> "z"
    text = packed("10 b z", 36, 40, "|".join(words))
    assert unpacker.unpack(text) == "word36 word11 word35"


def test_radix_62_long_dictionary():
    words = [f"w{i}" for i in range(63)]
    text = packed("Z 10 a A", 62, 63, "|".join(words))
    assert unpacker.unpack(text) == "w61 w62 w10 w36"


def test_empty_dictionary_entry_keeps_token():
    assert unpacker.unpack(packed("0 1 2", 10, 3, "foo||baz")) == "foo 1 baz"


def test_count_larger_than_dictionary_is_clamped():
    block = unpacker.parse(packed("0 1 2 3", 10, 9, "a|b|c"))
    assert block.token_count == 3
    assert unpacker.unpack_block(block) == "a b c 3"


def test_tokens_only_replaced_as_whole_words():
    assert unpacker.unpack(packed("0 10 x0 0x", 10, 2, "zero|one")) == "zero 10 x0 0x"


def test_missing_split_returns_input():
    text = packed("0 1 2", 36, 3, "foo|bar|baz", tail=",0,{}))")
    assert unpacker.unpack(text) == text


def test_bad_radix_returns_input():
    text = packed("0 1 2", 99, 3, "foo|bar|baz")
    assert unpacker.unpack(text) == text
    text = packed("0 1 2", 1, 3, "foo|bar|baz")
    assert unpacker.unpack(text) == text


def test_zero_count_returns_input():
    text = packed("0 1 2", 36, 0, "foo|bar|baz")
    assert unpacker.unpack(text) == text


def test_not_packed_returns_input():
    assert unpacker.unpack("var a = 1;") == "var a = 1;"
    assert unpacker.parse("var a = 1;") is None


def test_escaped_quotes_in_body():
    """The body's own trailing quote must survive; only the literal's closing quote goes."""
    text = packed(r"0(\'1\')", 10, 2, "alert|hi")
    assert unpacker.unpack(text) == "alert('hi')"


def test_terminator_without_trailing_arguments():
    text = packed("0 1", 36, 2, "hello|world", tail=".split('|')))")
    assert unpacker.unpack(text) == "hello world"


def test_parse_returns_block():
    block = unpacker.parse(packed("0 1 2", 36, 3, "foo|bar|baz"))
    assert block == PackedScriptBlock(dictionary=["foo", "bar", "baz"], radix=36, token_count=3, packed_body="0 1 2")


def test_long_dictionary_preferred_over_earlier_short_literal():
    words = "|".join(f"item{i}" for i in range(20))
    # a short "...".split("|") inside the body itself
    body = 'var s="q|r".split("|");0 1'
    text = packed(body, 10, 20, words)
    assert unpacker.unpack(text) == 'var s="q|r".split("|");item0 item1'
