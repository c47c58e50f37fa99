import asyncio

from src.resolver import runner
from src.resolver.runner import ResolverEngine

from tests.fixtures import PACKED_PAGE, STREAM_URL, FakePage


def test_registry_order():
    ids = [d["id"] for d in runner.list_detectors()]
    assert ids == ["players", "dom", "scripts", "network", "window_vars"]
    assert runner.get_detector("dom").rank == 400
    assert runner.get_detector("nope") is None


def test_resolve_combines_detectors():
    url = "https://cdn.example.com/hls/master.m3u8"
    fake = FakePage({
        "typeof window.jwplayer": {"sources": [{"src": url}], "state": {"playing": True, "time": 1}},
        "getEntriesByType": [{"name": url}, {"name": "https://cdn.example.com/hls/seg-1.ts"}],
        "outerHTML": PACKED_PAGE,
    })
    result = asyncio.run(ResolverEngine().resolve(fake))
    assert result.success
    assert result.player_type == "jwplayer"
    by_url = {s.url: s.source_tag.value for s in result.sources}
    assert by_url[url] == "player_api"
    assert by_url[STREAM_URL] == "packed_js"
    assert by_url["https://cdn.example.com/hls/seg-1.ts"] == "network"
    d = result.to_dict()
    assert d["detectors"]["network"]["count"] == 2
    assert d["playerState"]["isPlaying"] is True


def test_slow_detector_times_out_without_sinking_the_rest():
    async def slow(_arg):
        await asyncio.sleep(1)
        return []

    fake = FakePage({
        "getEntriesByType": slow,
        "data-attr": [{"src": "https://cdn.example.com/v.mp4", "tag": "video"}],
    })
    result = asyncio.run(ResolverEngine(probe_timeout=0.05).resolve(fake))
    assert result.success
    assert [s.url for s in result.sources] == ["https://cdn.example.com/v.mp4"]
    assert result.detectors["network"] == {"count": 0, "timedOut": True}


def test_failing_detector_reports_error():
    fake = FakePage({"outerHTML": RuntimeError("page crashed")})
    result = asyncio.run(ResolverEngine().resolve(fake))
    assert not result.success
    assert "page crashed" in result.detectors["scripts"]["error"]
    assert result.detectors["dom"] == {"count": 0}


def test_total_deadline_keeps_finished_results():
    async def stuck(_arg):
        await asyncio.sleep(5)
        return {}

    fake = FakePage({
        "names.forEach": stuck,
        "getEntriesByType": [{"name": "https://cdn.example.com/hls/a.m3u8"}],
    })
    engine = ResolverEngine(probe_timeout=10, total_timeout=0.2)
    result = asyncio.run(engine.resolve(fake))
    assert [s.url for s in result.sources] == ["https://cdn.example.com/hls/a.m3u8"]
    assert result.detectors["window_vars"] == {"count": 0, "timedOut": True}
    assert list(result.detectors)[-1] == "window_vars"


def test_detector_subset():
    fake = FakePage({"getEntriesByType": [{"name": "https://cdn.example.com/hls/a.m3u8"}]})
    result = asyncio.run(ResolverEngine().resolve(fake, detectors=["network", "unknown"]))
    assert list(result.detectors) == ["network"]
    assert result.success


def test_nothing_selected():
    result = asyncio.run(ResolverEngine().resolve(FakePage(), detectors=[]))
    assert not result.success
    assert result.detectors == {}


def test_per_call_deadline():
    async def stuck(_arg):
        await asyncio.sleep(5)
        return []

    fake = FakePage({"getEntriesByType": stuck})
    result = asyncio.run(ResolverEngine(probe_timeout=10).resolve(fake, timeout=0.2))
    assert result.detectors["network"]["timedOut"] is True


def test_cancelled_resolve_returns_finished_results():
    async def stuck(_arg):
        await asyncio.sleep(5)
        return []

    fake = FakePage({
        "getEntriesByType": stuck,
        "data-attr": [{"src": "https://cdn.example.com/v.mp4", "tag": "video"}],
    })

    async def main():
        task = asyncio.create_task(ResolverEngine(probe_timeout=10, total_timeout=10).resolve(fake))
        await asyncio.sleep(0.1)
        task.cancel()
        result = await task
        left = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        return result, left

    result, left = asyncio.run(main())
    assert left == []
    assert [s.url for s in result.sources] == ["https://cdn.example.com/v.mp4"]
    assert result.detectors["network"] == {"count": 0, "timedOut": True}


def test_player_found_survives_native_probe_crash():
    fake = FakePage({
        "typeof window.jwplayer": {"sources": []},
        "const videos = Array.from": RuntimeError("Execution context was destroyed"),
    })
    result = asyncio.run(ResolverEngine().resolve(fake, detectors=["players"]))
    assert result.success
    assert result.player_type == "jwplayer"
    assert "error" not in result.detectors["players"]
