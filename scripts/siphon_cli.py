"""Command-line access to the offline resolver pieces.

Reads the input from a file (or stdin when no file is given) and prints
the JSON result.

Usage:
    python scripts/siphon_cli.py decode payload.txt --chain base64 rot13
    python scripts/siphon_cli.py decode payload.txt          # guess the layers
    python scripts/siphon_cli.py unpack player.js
    curl -s https://host/embed/abc | python scripts/siphon_cli.py harvest

Exit code is 1 when nothing useful came out (no layer peeled, no
unpack, no stream URL found).
"""

import argparse
import json
import logging
import sys

from src.resolver import config, decoders, harvester, unpacker
from src.resolver.base import EncodedPayload


def read_input(path):
    if path in (None, '-'):
        return sys.stdin.read()
    with open(path, encoding='utf-8', errors='replace') as f:
        return f.read()


def cmd_decode(args, text):
    if args.chain:
        result = decoders.decode(EncodedPayload(raw=text.strip(), chain=args.chain))
    else:
        result = decoders.auto_decode(text, max_depth=args.max_depth)
    return result.to_dict(), bool(result.layers)


def cmd_unpack(args, text):
    output = unpacker.unpack(text)
    changed = output != text
    if args.raw:
        return output, changed
    return {'packed': unpacker.detect(text), 'unpacked': changed, 'output': output}, changed


def cmd_harvest(args, text):
    result = harvester.harvest(text)
    data = result.to_dict()
    if not args.scripts:
        data.pop('unpackedScripts')
    return data, bool(result.stream_urls)


def main():
    parser = argparse.ArgumentParser(description='Siphon media resolver tools')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('decode', help='Peel encoding layers off a payload')
    p.add_argument('file', nargs='?', help='Input file (default: stdin)')
    p.add_argument('--chain', nargs='+', help='Layers to apply, outermost first')
    p.add_argument('--max-depth', type=int, default=5, help='Layer limit when guessing')
    p.set_defaults(handler=cmd_decode)

    p = sub.add_parser('unpack', help='Unpack a P.A.C.K.E.R. script')
    p.add_argument('file', nargs='?', help='Input file (default: stdin)')
    p.add_argument('--raw', action='store_true', help='Print only the unpacked source')
    p.set_defaults(handler=cmd_unpack)

    p = sub.add_parser('harvest', help='Unpack every packed block in a page and list stream URLs')
    p.add_argument('file', nargs='?', help='Input file (default: stdin)')
    p.add_argument('--scripts', action='store_true', help='Include the unpacked sources')
    p.set_defaults(handler=cmd_harvest)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    output, found = args.handler(args, read_input(args.file))
    if isinstance(output, str):
        print(output)
    else:
        print(json.dumps(output, indent=2))
    sys.exit(0 if found else 1)


if __name__ == '__main__':
    main()
