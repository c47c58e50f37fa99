from src.resolver import harvester

from tests.fixtures import ODD_TERMINATOR_PAGE, PACKED_PAGE, STREAM_URL, packed_script, page


def test_packed_page_yields_stream_url():
    result = harvester.harvest(PACKED_PAGE)
    assert len(result.unpacked_scripts) == 1
    assert 'file:"https://cdn.example.com/stream"' in result.unpacked_scripts[0]
    assert STREAM_URL in result.extracted_urls
    assert STREAM_URL in result.stream_urls


def test_precise_block_boundaries():
    blocks = harvester.find_blocks(PACKED_PAGE)
    assert len(blocks) == 1
    assert blocks[0].startswith("eval(function(p,a,c,k,e,d)")
    assert blocks[0].endswith(".split('|'),0,{}))")


def test_window_fallback_when_terminator_is_unusual():
    assert harvester._precise_blocks(ODD_TERMINATOR_PAGE) == []
    blocks = harvester.find_blocks(ODD_TERMINATOR_PAGE)
    assert len(blocks) == 1
    result = harvester.harvest(ODD_TERMINATOR_PAGE)
    assert STREAM_URL in result.stream_urls


def test_two_blocks_in_one_page():
    second_body = 'var cfg={sources:[{src:"0",label:"720p"}],autoplay:false,muted:true,controls:true,preload:"metadata",loop:false};'
    html = page(
        packed_script(second_body, 10, 1, "https://cdn.example.com/hls/720/index.m3u8"),
        packed_script("var s=1;", 10, 1, "x"),
    ) + PACKED_PAGE
    result = harvester.harvest(html)
    assert "https://cdn.example.com/hls/720/index.m3u8" in result.stream_urls
    assert STREAM_URL in result.stream_urls
    # the tiny second block unpacks to less than the minimum and is dropped
    assert len(result.unpacked_scripts) == 2


def test_short_unpack_results_are_dropped():
    html = page(packed_script("0 1", 36, 2, "hello|world"))
    result = harvester.harvest(html)
    assert result.unpacked_scripts == []
    assert result.stream_urls == []


def test_page_without_packer():
    result = harvester.harvest('<html><script>var u="https://cdn.example.com/a.m3u8";</script></html>')
    assert result.to_dict()["counts"] == {"scripts": 0, "urls": 0, "streams": 0}
    assert harvester.harvest("").stream_urls == []
