#!/usr/bin/env python3
import http.server
import socketserver
import json
import sys
import logging
import argparse
import urllib.parse
from debugger import Debugger
from pipe_runner import ScriptedInput, format_tokens

logger = logging.getLogger(__name__)

PORT = 8000
RUN_STEP_LIMIT = 100000

class DebugSession:
    """One debugger instance plus the source it was loaded from."""

    def __init__(self, code, input_lines=()):
        self.code = code
        self.input_lines = list(input_lines)
        self.reset()

    def reset(self):
        self.input = ScriptedInput(self.input_lines)
        self.dbg = Debugger(self.code, read_line=self.input)

class DebuggerHandler(http.server.BaseHTTPRequestHandler):
    session = None

    def send_json(self, payload, status=200):
        body = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header('Content-type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def read_json(self):
        length = int(self.headers.get('Content-Length') or 0)
        if length == 0:
            return {}
        return json.loads(self.rfile.read(length))

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        parsed_path = urllib.parse.urlparse(self.path)

        if parsed_path.path == '/state':
            dbg = self.session.dbg
            response = dbg.get_state()
            query = urllib.parse.parse_qs(parsed_path.query, keep_blank_values=True)
            if 'init' in query:
                response['tokens'] = format_tokens(dbg.tokens)
            self.send_json(response)
            return

        self.send_json({'error': f'not found: {parsed_path.path}'}, status=404)

    def do_POST(self):
        try:
            data = self.read_json()
        except ValueError as e:
            self.send_json({'error': f'bad request body: {e}'}, status=400)
            return
        if not isinstance(data, dict):
            self.send_json({'error': 'request body must be a JSON object'}, status=400)
            return

        dbg = self.session.dbg

        if self.path == '/step':
            count = data.get('count', 1)
            if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= RUN_STEP_LIMIT:
                self.send_json({'error': f'count must be an integer between 1 and {RUN_STEP_LIMIT}'}, status=400)
                return
            steps_done = 0
            for _ in range(count):
                if not dbg.run_step():
                    break
                steps_done += 1
            self.send_json({'steps_executed': steps_done, 'error': str(dbg.error) if dbg.error else None})
        elif self.path == '/run':
            steps_done = dbg.continue_run(limit=RUN_STEP_LIMIT)
            self.send_json({'steps_executed': steps_done, 'finished': dbg.finished,
                            'error': str(dbg.error) if dbg.error else None})
        elif self.path == '/breakpoint':
            ip = data.get('ip')
            if not isinstance(ip, int):
                self.send_json({'error': 'ip must be an integer'}, status=400)
                return
            self.send_json({'ip': ip, 'set': dbg.toggle_breakpoint(ip)})
        elif self.path == '/input':
            lines = data.get('lines', [])
            if not isinstance(lines, list) or not all(isinstance(line, str) for line in lines):
                self.send_json({'error': 'lines must be a list of strings'}, status=400)
                return
            self.session.input.feed(*lines)
            self.send_json({'queued': len(self.session.input.lines)})
        elif self.path == '/reset':
            self.session.reset()
            logger.info("session reset")
            self.send_json({'status': 'ok'})
        else:
            self.send_json({'error': f'not found: {self.path}'}, status=404)

def make_server(code, port=PORT, input_lines=()):
    handler = type('BoundDebuggerHandler', (DebuggerHandler,), {'session': DebugSession(code, input_lines)})
    return socketserver.TCPServer(("", port), handler)

def run_server(filename, port=PORT, input_lines=()):
    with open(filename, 'r', errors='replace', newline='') as f:
        code = f.read()

    with make_server(code, port, input_lines) as httpd:
        print(f"Starting Web Debugger for {filename}")
        print(f"Open http://localhost:{httpd.server_address[1]}/state in your browser")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            pass

def main(argv=None):
    parser = argparse.ArgumentParser(prog="pipe-debug-server", description="Serve a .pipe debugging session over HTTP")
    parser.add_argument("file")
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--input", action="append", default=[], help="line to feed an input instruction (repeatable)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every request")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        run_server(args.file, port=args.port, input_lines=args.input)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
