import threading

import pytest

from stw.site import Site
from stw.watcher import WatchLoop

from conftest import write_files


class DummyEvent:
    def __init__(self, event_type, path, is_directory=False, dest_path=""):
        self.event_type = event_type
        self.src_path = str(path)
        self.dest_path = str(dest_path) if dest_path else ""
        self.is_directory = is_directory


class DummyObserver:
    instances = []

    def __init__(self):
        self.scheduled = []
        self.calls = []
        self.alive = True
        DummyObserver.instances.append(self)

    def schedule(self, handler, path, recursive):
        self.scheduled.append((path, recursive))

    def start(self):
        self.calls.append("start")

    def stop(self):
        self.calls.append("stop")

    def join(self):
        self.calls.append("join")

    def is_alive(self):
        return self.alive


@pytest.fixture
def site(tmp_path):
    write_files(
        tmp_path,
        {
            "config.yaml": "site_name: First\n",
            "pages/index.html": "home",
            "templates/base.html": "{{ content }}",
        },
    )
    return Site.from_root(tmp_path.resolve())


@pytest.fixture
def observer(monkeypatch):
    DummyObserver.instances = []
    monkeypatch.setattr("stw.watcher.Observer", DummyObserver)
    return DummyObserver


def test_relevant_events(site):
    root = site.project_root
    loop = WatchLoop(site, lambda: True, ignored=(site.dist_dir,))

    assert loop.is_relevant(DummyEvent("modified", root / "pages" / "index.html"))
    assert loop.is_relevant(DummyEvent("created", root / "templates" / "new.html"))
    assert loop.is_relevant(DummyEvent("deleted", root / "assets" / "app.js"))
    assert loop.is_relevant(DummyEvent("modified", root / "config.yaml"))
    assert loop.is_relevant(
        DummyEvent("moved", root / "draft.html", dest_path=root / "pages" / "index.html")
    )

    assert not loop.is_relevant(DummyEvent("opened", root / "pages" / "index.html"))
    assert not loop.is_relevant(DummyEvent("modified", root / "pages", is_directory=True))
    assert not loop.is_relevant(DummyEvent("modified", root / "dist" / "index.html"))
    assert not loop.is_relevant(DummyEvent("modified", root / "README.md"))
    assert not loop.is_relevant(
        DummyEvent("modified", root / "assets" / "node_modules" / "x.js")
    )


def test_ignored_directories_inside_sources(site):
    root = site.project_root
    loop = WatchLoop(site, lambda: True, ignored=(root / "assets" / "generated",))
    assert not loop.is_relevant(DummyEvent("modified", root / "assets" / "generated" / "a.css"))


def test_config_change_reloads_before_rebuild(site):
    seen = []
    loop = WatchLoop(site, lambda: seen.append(site.config["site_name"]) or True)
    site.config_path.write_text("site_name: Second\n", encoding="utf-8")

    assert loop.process([DummyEvent("modified", site.config_path)]) is True
    assert seen == ["Second"]


def test_config_reload_error_skips_rebuild(site, capsys):
    calls = []
    loop = WatchLoop(site, lambda: calls.append("rebuild") or True)
    site.config_path.write_text("site_name: [broken\n", encoding="utf-8")

    assert loop.process([DummyEvent("modified", site.config_path)]) is False
    assert calls == []
    assert site.config["site_name"] == "First"
    assert "Config reload error" in capsys.readouterr().out


def test_undecodable_config_skips_rebuild(site, capsys):
    calls = []
    loop = WatchLoop(site, lambda: calls.append("rebuild") or True)
    site.config_path.write_bytes(b"site_name: \xff\xfe\n")

    assert loop.process([DummyEvent("modified", site.config_path)]) is False
    assert calls == []
    assert site.config["site_name"] == "First"
    assert "not valid UTF-8" in capsys.readouterr().out


def test_rebuild_exception_is_reported_and_loop_survives(site, observer, capsys):
    recovered = threading.Event()
    calls = []

    def rebuild():
        calls.append("rebuild")
        if len(calls) == 1:
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        recovered.set()
        return True

    loop = WatchLoop(site, rebuild, poll_interval=0.01, debounce_seconds=0)
    loop.enqueue(DummyEvent("modified", site.pages_dir / "index.html"))
    loop.enqueue(DummyEvent("modified", site.templates_dir / "base.html"))
    thread = loop.start()
    try:
        assert recovered.wait(2)
        assert thread.is_alive()
    finally:
        loop.stop()
    assert calls == ["rebuild", "rebuild"]
    assert "Build error" in capsys.readouterr().out


def test_failed_rebuild_is_reported_to_caller(site, capsys):
    loop = WatchLoop(site, lambda: False)
    assert loop.process([DummyEvent("modified", site.pages_dir / "index.html")]) is False
    assert "Change detected" in capsys.readouterr().out


def test_start_schedules_sources_and_config(site, observer, capsys):
    loop = WatchLoop(site, lambda: True, poll_interval=0.01)
    loop.start()
    try:
        watcher = observer.instances[0]
        assert (str(site.pages_dir), True) in watcher.scheduled
        assert (str(site.templates_dir), True) in watcher.scheduled
        assert (str(site.project_root), False) in watcher.scheduled
        assert all(path != str(site.assets_dir) for path, _ in watcher.scheduled)
        assert "Watcher error" in capsys.readouterr().out
    finally:
        loop.stop()
    assert watcher.calls == ["start", "stop", "join"]
    assert loop.stopped


def test_created_source_directory_gets_watched(site, observer):
    loop = WatchLoop(site, lambda: True, poll_interval=0.01)
    loop.start()
    try:
        watcher = observer.instances[0]
        site.assets_dir.mkdir()
        loop.process([DummyEvent("created", site.assets_dir, is_directory=True)])
        assert (str(site.assets_dir), True) in watcher.scheduled

        count = len(watcher.scheduled)
        loop.process([DummyEvent("created", site.pages_dir / "blog", is_directory=True)])
        assert len(watcher.scheduled) == count
    finally:
        loop.stop()


def test_schedule_failure_is_reported(site, monkeypatch, capsys):
    class FailingObserver(DummyObserver):
        def schedule(self, handler, path, recursive):
            raise OSError("inotify watch limit reached")

    monkeypatch.setattr("stw.watcher.Observer", FailingObserver)
    loop = WatchLoop(site, lambda: True, poll_interval=0.01)
    loop.start()
    loop.stop()
    assert "inotify watch limit reached" in capsys.readouterr().out


def test_burst_of_events_triggers_one_rebuild(site, observer):
    rebuilt = threading.Event()
    calls = []

    def rebuild():
        calls.append("rebuild")
        rebuilt.set()
        return True

    loop = WatchLoop(site, rebuild, poll_interval=0.01, debounce_seconds=0.2)
    for name in ("a.html", "b.html", "c.html"):
        loop.enqueue(DummyEvent("modified", site.pages_dir / name))
    loop.start()
    try:
        assert rebuilt.wait(2)
    finally:
        loop.stop()
    assert calls == ["rebuild"]


def test_loop_ends_when_observer_dies(site, observer, capsys):
    loop = WatchLoop(site, lambda: True, poll_interval=0.01)
    thread = loop.start()
    observer.instances[0].alive = False
    thread.join(2)
    assert not thread.is_alive()
    assert "observer stopped" in capsys.readouterr().out
    loop.stop()


def test_handler_queues_only_relevant_events(site, observer):
    calls = []
    loop = WatchLoop(site, lambda: calls.append("rebuild") or True)
    loop._handler.on_any_event(DummyEvent("modified", site.project_root / "notes.txt"))
    loop._handler.on_any_event(DummyEvent("modified", site.pages_dir / "index.html"))
    assert loop._events.qsize() == 1
