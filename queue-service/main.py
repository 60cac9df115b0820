"""Local durable queue for development. Each queue is a JSONL file.

POST /queues {"name": ...}        create (201) or 409 if it exists
GET  /queues/<name>               {"url": ...} or 404
POST /queues/<name>/messages      append one message, returns messageId
GET  /health
"""

import json
import os
import re
import uuid
from http.server import HTTPServer, BaseHTTPRequestHandler
from pathlib import Path

DATA_DIR = Path(os.environ.get("QUEUE_DATA_DIR", "/data/queues"))
QUEUE_PORT = int(os.environ.get("QUEUE_PORT", "8082"))

_QUEUE_NAME = re.compile(r"^[A-Za-z0-9_-]{1,80}$")
_MESSAGES_PATH = re.compile(r"^/queues/([^/]+)/messages$")
_QUEUE_PATH = re.compile(r"^/queues/([^/]+)$")


def _queue_file(name: str) -> Path:
    return DATA_DIR / f"{name}.jsonl"


class QueueHandler(BaseHTTPRequestHandler):
    def _send_json(self, status: int, body: dict):
        payload = json.dumps(body).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _read_json(self):
        length = int(self.headers.get("Content-Length", 0))
        return json.loads(self.rfile.read(length))

    def _queue_url(self, name: str) -> str:
        host = self.headers.get("Host", f"localhost:{QUEUE_PORT}")
        return f"http://{host}/queues/{name}"

    def do_POST(self):
        if self.path == "/queues":
            self._create_queue()
            return
        match = _MESSAGES_PATH.match(self.path)
        if match:
            self._append_message(match.group(1))
            return
        self.send_error(404)

    def do_GET(self):
        if self.path == "/health":
            self._send_json(200, {"status": "ok"})
            return
        match = _QUEUE_PATH.match(self.path)
        if match and _queue_file(match.group(1)).exists():
            self._send_json(200, {"url": self._queue_url(match.group(1))})
            return
        self.send_error(404)

    def _create_queue(self):
        try:
            name = self._read_json()["name"]
        except (json.JSONDecodeError, KeyError, TypeError):
            self.send_error(400, "Body must be JSON with a name")
            return
        if not isinstance(name, str) or not _QUEUE_NAME.match(name):
            self.send_error(400, "Invalid queue name")
            return
        try:
            # Exclusive create so concurrent creators see exactly one 201
            _queue_file(name).open("x").close()
        except FileExistsError:
            self._send_json(409, {"error": "QueueAlreadyExists", "name": name})
            return
        self._send_json(201, {"url": self._queue_url(name)})

    def _append_message(self, name: str):
        path = _queue_file(name)
        if not _QUEUE_NAME.match(name) or not path.exists():
            self.send_error(404)
            return
        content_type = self.headers.get("Content-Type", "")
        if "json" not in content_type:
            self.send_error(400, "Content-Type must be application/json")
            return
        try:
            body = self._read_json()
        except json.JSONDecodeError:
            self.send_error(400, "Invalid JSON")
            return
        message_id = str(uuid.uuid4())
        with open(path, "a") as f:
            f.write(json.dumps({"messageId": message_id, "body": body}) + "\n")
            f.flush()
            os.fsync(f.fileno())
        self._send_json(200, {"messageId": message_id})

    def log_message(self, format, *args):
        pass  # Suppress default logging


if __name__ == "__main__":
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    server = HTTPServer(("0.0.0.0", QUEUE_PORT), QueueHandler)
    print(f"Queue service listening on :{QUEUE_PORT}, storing queues in {DATA_DIR}")
    server.serve_forever()
