import asyncio
import io
from pathlib import Path

import websockets

from quire.build import BuildReport
from quire.server import DevServer, _ChangeHandler, _ReloadHandler


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


def fake_report(root, cancelled=False):
    return BuildReport(pages=[], output_dir=root, config={}, cancelled=cancelled)


def make_handler(directory: Path, path: str) -> _ReloadHandler:
    handler = _ReloadHandler.__new__(_ReloadHandler)
    handler.path = path
    handler.directory = str(directory)
    handler.command = "GET"
    handler.request_version = "HTTP/1.1"
    handler.server_version = ""
    handler.sys_version = ""
    handler._headers_buffer = []
    handler.headers = {}
    handler.rfile = io.BytesIO(b"")
    handler.wfile = io.BytesIO()
    handler.codes = []
    handler.send_response = lambda code, message=None: handler.codes.append(code)
    handler.send_header = lambda *args, **kwargs: None
    handler.end_headers = lambda: None
    handler.send_error = lambda code, *args, **kwargs: handler.codes.append(("error", code))
    return handler


def test_change_handler_skips_output_and_hidden_files(tmp_path):
    server = DevServer(tmp_path)
    called = []
    server.rebuild = lambda include_drafts: called.append(include_drafts)
    handler = _ChangeHandler(server, include_drafts=True)

    handler.on_any_event(DummyEvent(str(server.output_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(server._staging_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "public.previous" / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "content" / ".post.md.swp")))
    handler.on_any_event(DummyEvent(str(tmp_path / "content"), is_directory=True))
    assert called == []

    handler.on_any_event(DummyEvent(str(tmp_path / "content" / "post.md")))
    assert called == [True]


def test_async_broadcast_drops_closed_clients(tmp_path):
    server = DevServer(tmp_path)

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class ClosedWS:
        async def send(self, msg):
            raise websockets.ConnectionClosed(None, None)

    good = GoodWS()
    closed = ClosedWS()
    server._ws_clients = {good, closed}
    asyncio.run(server._async_broadcast("hello"))
    assert good.messages == ["hello"]
    assert server._ws_clients == {good}


def test_dev_server_ports(tmp_path):
    server = DevServer(tmp_path)
    assert (server.http_port, server.ws_port) == (4000, 4001)

    server = DevServer(tmp_path, http_port=5055)
    assert server.ws_port == 5056

    explicit = DevServer(tmp_path, http_port=5055, ws_port=6000)
    assert explicit.ws_port == 6000
    assert ":6000" in explicit._reload_script

    (tmp_path / "quire.yaml").write_text("port: 8000\nws_port: 9000\n", encoding="utf-8")
    configured = DevServer(tmp_path)
    assert (configured.http_port, configured.ws_port) == (8000, 9000)


def test_rebuild_swaps_staging_into_place(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    server._compute_signature = lambda: ("sig",)
    server.output_dir.mkdir()
    (server.output_dir / "stale.html").write_text("old", encoding="utf-8")
    reloads = []
    server._broadcast_reload = lambda: reloads.append(True)
    called = {}

    def fake_build(root, **kwargs):
        called.update(kwargs)
        (kwargs["output_dir_override"] / "index.html").write_text("new", encoding="utf-8")
        return fake_report(kwargs["output_dir_override"])

    monkeypatch.setattr("quire.server.build_site", fake_build)
    server.rebuild(include_drafts=False)

    assert called["output_dir_override"] == server._staging_dir
    assert called["cancel"] is server._cancel
    assert called["root_url"] == "http://localhost:4000"
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "new"
    assert not (server.output_dir / "stale.html").exists()
    assert not server._staging_dir.exists()
    assert not (tmp_path / "public.previous").exists()
    assert reloads == [True]


def test_cancelled_rebuild_keeps_served_tree(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._compute_signature = lambda: ("sig",)
    server.output_dir.mkdir()
    (server.output_dir / "index.html").write_text("old", encoding="utf-8")
    reloads = []
    server._broadcast_reload = lambda: reloads.append(True)

    def fake_build(root, **kwargs):
        (kwargs["output_dir_override"] / "index.html").write_text("partial", encoding="utf-8")
        return fake_report(kwargs["output_dir_override"], cancelled=True)

    monkeypatch.setattr("quire.server.build_site", fake_build)
    server.rebuild(include_drafts=False)
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "old"
    assert not server._staging_dir.exists()
    assert reloads == []
    assert server._last_signature is None


def test_rebuild_guard(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    calls = []

    def fake_build(root, **kwargs):
        calls.append("built")
        return fake_report(kwargs["output_dir_override"])

    monkeypatch.setattr("quire.server.build_site", fake_build)
    server._broadcast_reload = lambda: calls.append("reloaded")
    server._debounce_seconds = 0.0

    sigs = [("a",), ("a",), ("b",)]
    server._compute_signature = lambda: sigs.pop(0) if sigs else ("b",)
    server.rebuild(include_drafts=False)
    server._rebuilding = True
    server.rebuild(include_drafts=False)  # skipped while rebuilding
    server._rebuilding = False
    server.rebuild(include_drafts=False)  # same signature
    server.rebuild(include_drafts=False)
    assert calls == ["built", "reloaded", "built", "reloaded"]


def test_build_renders_real_site(tmp_path, capsys):
    (tmp_path / "content").mkdir()
    (tmp_path / "templates").mkdir()
    (tmp_path / "templates" / "page.html").write_text("<body>{{ body }}</body>", encoding="utf-8")
    (tmp_path / "content" / "note.md").write_text("+++\n+++\nhello", encoding="utf-8")
    (tmp_path / "content" / "bad.md").write_text("oops", encoding="utf-8")

    server = DevServer(tmp_path)
    assert server._build(include_drafts=False)
    assert "<p>hello</p>" in (server.output_dir / "note" / "index.html").read_text(encoding="utf-8")
    assert "1 failure(s)" in capsys.readouterr().out


def test_stop_cancels_build_and_observer(tmp_path):
    server = DevServer(tmp_path)

    class DummyObserver:
        def __init__(self):
            self.calls = []

        def stop(self):
            self.calls.append("stop")

        def join(self):
            self.calls.append("join")

    server._observer = DummyObserver()
    server.stop()
    assert server._cancel.is_set()
    assert server._observer.calls == ["stop", "join"]


def test_ws_handler_tracks_clients(tmp_path):
    server = DevServer(tmp_path)

    class DummyWS:
        closed = False

        async def wait_closed(self):
            assert self in server._ws_clients
            self.closed = True

    ws = DummyWS()
    asyncio.run(server._ws_handler(ws))
    assert ws.closed
    assert ws not in server._ws_clients


def test_compute_signature(tmp_path):
    server = DevServer(tmp_path)
    assert server._compute_signature() is None

    (tmp_path / "content" / "posts").mkdir(parents=True)
    (tmp_path / "content" / "posts" / "a.md").write_text("hi", encoding="utf-8")
    (tmp_path / "quire.yaml").write_text("title: t\n", encoding="utf-8")
    (tmp_path / "content" / "dangling.md").symlink_to(tmp_path / "nope.md")
    signature = server._compute_signature()
    names = [Path(entry[0]).name for entry in signature]
    assert names == ["a.md", "quire.yaml"]


def test_start_watcher_schedules_sources(monkeypatch, tmp_path):
    (tmp_path / "content").mkdir()
    (tmp_path / "templates").mkdir()
    server = DevServer(tmp_path)
    scheduled = []

    class DummyObserver:
        def schedule(self, handler, path, recursive):
            scheduled.append((path, recursive))

        def start(self):
            scheduled.append(("started", None))

    monkeypatch.setattr("quire.server.Observer", DummyObserver)
    server._start_watcher(include_drafts=False)
    assert scheduled == [
        (str(tmp_path / "content"), True),
        (str(tmp_path / "templates"), True),
        (str(tmp_path), False),
        ("started", None),
    ]


def test_broadcast_reload_uses_server_loop(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    called = {}

    def fake_runner(coro, loop):
        called["loop"] = loop
        return asyncio.run(coro)

    monkeypatch.setattr("quire.server.asyncio.run_coroutine_threadsafe", fake_runner)
    server._broadcast_reload()
    assert called["loop"] is server._loop


def test_ws_start_failure(monkeypatch, tmp_path, capsys):
    server = DevServer(tmp_path, http_port=5055, ws_port=5057)

    async def fake_run():
        raise OSError("bind error")

    monkeypatch.setattr(server, "_run_ws_server", fake_run)
    server._start_ws()
    assert "failed to start" in capsys.readouterr().out


def test_reload_handler_injects_script(tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Hello</body></html>", encoding="utf-8")
    (tmp_path / "plain.html").write_text("<html>No body</html>", encoding="utf-8")

    handler = make_handler(tmp_path, "/index.html")
    assert _ReloadHandler.send_head(handler) is None
    body = handler.wfile.getvalue().decode()
    assert handler.codes == [200]
    assert body.index("WebSocket") < body.index("</body>")

    handler = make_handler(tmp_path, "/plain.html")
    _ReloadHandler.send_head(handler)
    assert handler.wfile.getvalue().decode().rstrip().endswith("</script>")


def test_send_head_serves_directory_index(tmp_path):
    (tmp_path / "posts").mkdir()
    (tmp_path / "posts" / "index.html").write_text("<body>index</body>", encoding="utf-8")
    handler = make_handler(tmp_path, "/posts/")
    assert _ReloadHandler.send_head(handler) is None
    assert handler.codes == [200]
    assert b"index" in handler.wfile.getvalue()


def test_send_head_falls_back_for_assets(tmp_path):
    (tmp_path / "style.css").write_text("body{}", encoding="utf-8")
    handler = make_handler(tmp_path, "/style.css")
    result = _ReloadHandler.send_head(handler)
    assert result is not None
    result.close()


def test_missing_paths_get_404(tmp_path):
    (tmp_path / "empty").mkdir()
    handler = make_handler(tmp_path, "/empty/")
    assert _ReloadHandler.send_head(handler) is None
    assert handler.codes == [("error", 404)]

    (tmp_path / "404.html").write_text("<body>oops</body>", encoding="utf-8")
    handler = make_handler(tmp_path, "/missing")
    assert _ReloadHandler.send_head(handler) is None
    assert handler.codes == [404]
    body = handler.wfile.getvalue().decode()
    assert "oops" in body
    assert "reload" in body


def test_rebuild_reports_missing_content_root(tmp_path, capsys):
    server = DevServer(tmp_path)
    server._compute_signature = lambda: ("sig",)
    reloads = []
    server._broadcast_reload = lambda: reloads.append(True)

    server.rebuild(include_drafts=False)

    assert "Rebuild failed" in capsys.readouterr().out
    assert reloads == []
    assert not server._rebuilding
    assert not server._staging_dir.exists()
    assert server._last_signature is None
