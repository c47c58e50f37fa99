"""Shared page and script fixtures."""

SHIM = r"eval(function(p,a,c,k,e,d){while(c--)if(k[c])p=p.replace(new RegExp('\\b'+c.toString(a)+'\\b','g'),k[c]);return p}"

STREAM_URL = "https://cdn.example.com/stream"

PLAYER_BODY = (
    'var player=jwplayer("vplayer");player.setup({file:"1",type:"hls",width:"100%",'
    'height:"100%",autostart:true,primary:"html5",preload:"auto",mute:false});'
)


def packed_script(body, radix, count, words, tail=".split('|'),0,{}))"):
    return f"{SHIM}('{body}',{radix},{count},'{words}'{tail}"


def page(*scripts, body=""):
    tags = "".join(f"<script>{s}</script>" for s in scripts)
    return f"<html><head>{tags}</head><body>{body}</body></html>"


PACKED_PAGE = page(packed_script(PLAYER_BODY, 36, 3, f"m3u8|{STREAM_URL}|master"))

# closes with ,10,{} instead of ,0,{}, so only the window scan finds it
ODD_TERMINATOR_PAGE = page(packed_script(
    PLAYER_BODY, 36, 3, f"m3u8|{STREAM_URL}|master", tail=".split('|'),10,{}))",
))


class FakePage:
    """
    Stand-in for a browser page. `responses` maps a marker string to what
    evaluate() answers for any script containing it; first match wins.
    A value may be an exception (raised) or a coroutine function (awaited).
    """

    def __init__(self, responses=None):
        self.responses = {
            "getEntriesByType": [],
            "outerHTML": "<html></html>",
            "names.forEach": {},
            "data-attr": [],
        }
        self.responses.update(responses or {})
        self.calls = []

    async def evaluate(self, expression, arg=None):
        self.calls.append((expression, arg))
        for marker, value in self.responses.items():
            if marker not in expression:
                continue
            if isinstance(value, Exception):
                raise value
            if callable(value):
                return await value(arg)
            return value
        return None
