"""
Tests for the project file store.
"""

import asyncio
import json

import pytest

from weblisite.services.file_service import FileStoreError


class TestWrites:
    def test_writes_validated_content(self, store):
        result = asyncio.run(store.create_or_update_file("package.json", '{"dependencies":{}'))
        on_disk = json.loads((store.project_dir / "package.json").read_text())
        assert "react" in on_disk["dependencies"]
        assert result.changed

    def test_creates_directories(self, store):
        asyncio.run(store.create_or_update_file("src/styles/site.css", "a {}\n"))
        assert store.read_file("src/styles/site.css") == "a {}\n"

    @pytest.mark.parametrize("path", ["../outside.js", "src/../../outside.js"])
    def test_rejects_escaping_paths(self, store, path):
        with pytest.raises(FileStoreError):
            asyncio.run(store.create_or_update_file(path, "x"))

    def test_partial_write_is_not_validated(self, store):
        assert asyncio.run(store.write_partial("src/App.jsx", "function App() {\n"))
        assert store.read_file("src/App.jsx") == "function App() {\n"

    def test_partial_write_to_bad_path_fails_quietly(self, store):
        assert asyncio.run(store.write_partial("../x.js", "x")) is False

    def test_last_issued_write_wins(self, store):
        async def scenario():
            lock = store._lock("src/index.css")
            await lock.acquire()
            tasks = [
                asyncio.create_task(store.create_or_update_file("src/index.css", text))
                for text in ("a {}\n", "b {}\n", "c {}\n")
            ]
            await asyncio.sleep(0)
            lock.release()
            await asyncio.gather(*tasks)

        asyncio.run(scenario())
        assert store.read_file("src/index.css") == "c {}\n"


    def test_disk_writes_run_off_the_event_loop(self, store, monkeypatch):
        offloaded = []
        to_thread = asyncio.to_thread

        async def spy(func, *args):
            offloaded.append(func.__name__)
            return await to_thread(func, *args)

        monkeypatch.setattr(asyncio, "to_thread", spy)
        asyncio.run(store.create_or_update_file("src/a.css", "a {}\n"))
        asyncio.run(store.write_partial("src/b.css", "b {"))
        assert offloaded == ["_write", "_write"]


class TestReads:
    def test_missing_file(self, store):
        with pytest.raises(FileNotFoundError):
            store.read_file("src/Nope.jsx")

    def test_list_files_skips_build_output(self, store):
        for path in ("src/App.jsx", "node_modules/react/index.js", "dist/app.js", "index.html"):
            full = store.project_dir / path
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text("x")
        assert store.list_files() == ["index.html", "src/App.jsx"]

    def test_list_files_without_project(self, store):
        assert store.list_files() == []

    def test_exists(self, store):
        asyncio.run(store.create_or_update_file("a.css", "x"))
        assert store.exists("a.css")
        assert not store.exists("b.css")
        assert not store.exists("../a.css")


class TestReset:
    def test_reset_clears_tree_and_keeps_dependencies(self, store):
        for path in ("src/components/Old.jsx", "index.html", "node_modules/react/index.js"):
            full = store.project_dir / path
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text("x")

        asyncio.run(store.reset())

        assert store.list_files() == []
        assert (store.project_dir / "node_modules/react/index.js").is_file()
        for folder in ("src/components", "src/pages", "src/assets", "src/utils", "public"):
            assert (store.project_dir / folder).is_dir()

    def test_reset_creates_missing_project(self, store):
        asyncio.run(store.reset())
        assert store.project_dir.is_dir()
