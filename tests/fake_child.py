"""Stand-in for the JSON-RPC child process used by the tests.

Usage: python fake_child.py MODE

Modes:
    echo        reply {"jsonrpc": "2.0", "id": <id>, "result": {"echo": <request>}}
    silent      read input, never reply
    garbage     reply with a line that is not JSON (with surrounding whitespace)
    late-reply  reply to the first request after 1.5s, then echo
    crash       write to stderr and exit 3 immediately
"""

import json
import sys
import time


def reply(message):
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def echo(line):
    try:
        request = json.loads(line)
    except json.JSONDecodeError:
        reply({"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}})
        return
    request_id = request.get("id") if isinstance(request, dict) else None
    reply({"jsonrpc": "2.0", "id": request_id, "result": {"echo": request}})


def main(mode):
    if mode == "crash":
        sys.stderr.write("fatal: cannot start\n")
        sys.stderr.flush()
        sys.exit(3)

    sys.stderr.write(f"fake child started in {mode} mode\n")
    sys.stderr.flush()
    first = True
    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        if mode == "silent":
            continue
        if mode == "garbage":
            sys.stdout.write("  this is not json\t\n")
            sys.stdout.flush()
            continue
        if mode == "late-reply" and first:
            first = False
            time.sleep(1.5)
        echo(line)


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else "echo")
