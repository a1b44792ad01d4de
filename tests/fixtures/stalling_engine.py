"""Engine stand-in with requests that never finish or come back malformed.

Run as ``python stalling_engine.py PORT``. ``/create`` answers normally until a
``stallNextCreate`` call arms it. Call members:

- ``stall``: never replies.
- ``garbled``: replies with a body that is not JSON.
- ``oddStatus``: replies with an envelope whose status is neither ok nor error.

Every stalled request prints a line to stdout so tests can wait for it.
"""

import http.server
import json
import os
import sys
import threading

STALL_FOREVER: threading.Event = threading.Event()


class Handler(http.server.BaseHTTPRequestHandler):
    """Control endpoint with deliberately broken members."""

    next_ref: int = 1
    stall_next_create: bool = False

    def log_message(self, format: str, *args: object) -> None:
        return

    def _send(self, payload: bytes) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _reply(self, body: dict[str, object]) -> None:
        self._send(json.dumps(body).encode("utf-8"))

    def _stall(self, label: str) -> None:
        print(f"{label} stalled", flush=True)
        STALL_FOREVER.wait()

    def do_GET(self) -> None:
        self._reply({"status": "ok", "result": "pong"})

    def do_POST(self) -> None:
        length: int = int(self.headers.get("Content-Length", "0"))
        raw: bytes = self.rfile.read(length)
        if self.path == "/shutdown":
            self._reply({"status": "ok", "result": None})
            self.wfile.flush()
            os._exit(0)
        if self.path == "/create":
            if Handler.stall_next_create is True:
                self._stall("create")
            ref: int = Handler.next_ref
            Handler.next_ref += 1
            self._reply({"status": "ok", "result": {"ref": ref}})
            return

        member: str = str(json.loads(raw or b"{}").get("member"))
        if member == "stallNextCreate":
            Handler.stall_next_create = True
            self._reply({"status": "ok", "result": None})
        elif member == "stall":
            self._stall("call")
        elif member == "garbled":
            self._send(b"<html>not json</html>")
        elif member == "oddStatus":
            self._reply({"status": "maybe", "result": 1})
        else:
            self._reply({"status": "ok", "result": None})


def main() -> None:
    port: int = int(sys.argv[-1])
    server: http.server.ThreadingHTTPServer = http.server.ThreadingHTTPServer(("127.0.0.1", port), Handler)
    server.daemon_threads = True
    server.serve_forever()


if __name__ == "__main__":
    main()
