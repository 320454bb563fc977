"""
Tests for the stream demuxer: file blocks out of a streamed completion.

Deltas in → FileStarted / FileChunk / FileCompleted events out.
"""

import random

import pytest

from conftest import FENCE, file_block
from weblisite.services.demuxer import (
    DemuxState,
    FileChunk,
    FileCompleted,
    FileStarted,
    ReconcilePolicy,
    StreamDemuxer,
    normalize_block_path,
)

APP = "export default function App() {\n  return <h1>Hello</h1>;\n}\n"
CSS = "body {\n  margin: 0;\n}\n"
MANIFEST = '{\n  "name": "site"\n}\n'

STREAM = (
    "Here is your project.\n\n"
    + file_block("src/App.jsx", APP)
    + "\nAnd the styles:\n\n"
    + file_block("src/index.css", CSS, lang="css")
    + "\n"
    + file_block("package.json", MANIFEST, lang="json")
    + "\nThat's all.\n"
)


def run(deltas, loose=False):
    demuxer = StreamDemuxer(loose=loose)
    events = []
    for delta in deltas:
        events.extend(demuxer.feed(delta))
    events.extend(demuxer.finish())
    return demuxer, events


def completed(events):
    return [e for e in events if isinstance(e, FileCompleted)]


def split_randomly(text, seed):
    rng = random.Random(seed)
    pieces, i = [], 0
    while i < len(text):
        step = rng.randint(1, 17)
        pieces.append(text[i : i + step])
        i += step
    return pieces


# ═══════════════════════════════════════════════════════════════════
#  Well-formed blocks
# ═══════════════════════════════════════════════════════════════════


class TestBlocks:
    def test_one_completed_event_per_block(self):
        _, events = run([STREAM])
        done = completed(events)
        assert [e.path for e in done] == ["src/App.jsx", "src/index.css", "package.json"]
        assert [e.content for e in done] == [APP, CSS, MANIFEST]
        assert not any(e.truncated for e in done)

    def test_event_order_per_file(self):
        _, events = run([file_block("src/App.jsx", APP)])
        assert events[0] == FileStarted("src/App.jsx", "App.jsx")
        assert all(isinstance(e, FileChunk) for e in events[1:-1])
        assert "".join(e.text for e in events[1:-1]) == APP
        assert isinstance(events[-1], FileCompleted)

    def test_prose_is_ignored(self):
        _, events = run(["Some text\n```js\nconst a = 1;\n```\nmore text\n"])
        assert events == []

    def test_blank_line_between_header_and_fence(self):
        _, events = run(["File: src/a.js\n\n```js\nconst a = 1;\n```\n"])
        assert [(e.path, e.content) for e in completed(events)] == [("src/a.js", "const a = 1;\n")]

    def test_fence_trailing_last_line(self):
        _, events = run(["File: src/a.js\n```js\nfunction a() {\n}```\n"])
        assert completed(events)[0].content == "function a() {\n}\n"

    def test_markdown_keeps_nested_code_blocks(self):
        readme = "# T\n\n```bash\nnpm i\n```\n\nDone.\n"
        stream = file_block("README.md", readme, lang="md") + file_block("src/a.js", "a();\n", lang="js")
        _, events = run(split_randomly(stream, seed=3))
        assert [(e.path, e.content) for e in completed(events)] == [("README.md", readme), ("src/a.js", "a();\n")]

    def test_bare_fence_closes_non_markdown_block(self):
        _, events = run(["File: src/a.js\n```js\nconst a = 1;\n```\n```bash\nnpm i\n```\n"])
        assert [e.content for e in completed(events)] == ["const a = 1;\n"]

    def test_leading_dot_slash_is_dropped(self):
        _, events = run([file_block("./src/App.jsx", APP)])
        assert completed(events)[0].path == "src/App.jsx"

    def test_unsafe_path_is_ignored(self):
        _, events = run([file_block("../outside.js", "bad();\n", lang="js")])
        assert events == []

    def test_state_returns_to_scanning(self):
        demuxer, _ = run([STREAM])
        assert demuxer.state == DemuxState.SCANNING
        assert set(demuxer.completed) == {"src/App.jsx", "src/index.css", "package.json"}


# ═══════════════════════════════════════════════════════════════════
#  Chunk-boundary invariance
# ═══════════════════════════════════════════════════════════════════


class TestChunkBoundaries:
    def test_one_character_per_delta(self):
        _, whole = run([STREAM])
        _, single = run(list(STREAM))
        assert single == whole

    @pytest.mark.parametrize("seed", [1, 7, 42, 1234])
    def test_random_splits(self, seed):
        _, whole = run([STREAM])
        _, pieces = run(split_randomly(STREAM, seed))
        assert pieces == whole

    def test_fence_split_across_deltas(self):
        text = file_block("src/a.js", "const a = 1;\n", lang="js")
        cut = text.rindex(FENCE) + 1
        _, events = run([text[:cut], text[cut:]])
        assert completed(events)[0].content == "const a = 1;\n"

    def test_partial_line_is_held_back(self):
        demuxer = StreamDemuxer()
        demuxer.feed("File: src/a.js\n```js\nconst a")
        assert demuxer.state == DemuxState.CAPTURING
        events = demuxer.feed(" = 1;\n")
        assert events == [FileChunk("src/a.js", "const a = 1;\n")]


# ═══════════════════════════════════════════════════════════════════
#  End of stream
# ═══════════════════════════════════════════════════════════════════


class TestTruncation:
    def test_truncated_file_is_flushed(self):
        _, events = run(["File: src/a.js\n```js\nconst a = 1;\nconst b"])
        done = completed(events)
        assert len(done) == 1
        assert done[0].truncated
        assert done[0].content == "const a = 1;\nconst b"

    def test_end_while_scanning_emits_nothing(self):
        _, events = run(["just prose, no files"])
        assert events == []

    def test_header_without_fence_emits_nothing(self):
        _, events = run(["File: src/a.js\n"])
        assert events == []

    def test_feed_after_finish_fails(self):
        demuxer = StreamDemuxer()
        demuxer.finish()
        with pytest.raises(RuntimeError):
            demuxer.feed("more")

    def test_finish_twice_is_a_noop(self):
        demuxer = StreamDemuxer()
        demuxer.feed("File: src/a.js\n```js\nx\n")
        assert len(completed(demuxer.finish())) == 1
        assert demuxer.finish() == []


# ═══════════════════════════════════════════════════════════════════
#  Reconciliation
# ═══════════════════════════════════════════════════════════════════


class TestReconcile:
    def test_loose_headers_are_recovered(self):
        text = file_block("src/App.jsx", APP) + "\n### src/Nav.jsx\n```jsx\nexport const Nav = 1;\n```\n"
        demuxer, events = run([text])
        assert [e.path for e in completed(events)] == ["src/App.jsx"]

        recovered = demuxer.reconcile()
        assert [(e.path, e.content) for e in recovered] == [("src/Nav.jsx", "export const Nav = 1;\n")]

    def test_bold_header_is_recovered(self):
        demuxer, _ = run(["**src/styles.css**\n```css\na {}\n```\n"])
        assert [e.path for e in demuxer.reconcile()] == ["src/styles.css"]

    def test_skip_existing_keeps_captured_files(self):
        text = file_block("src/a.js", "one();\n", lang="js") + "### src/a.js\n```js\ntwo();\n```\n"
        demuxer, _ = run([text])
        assert demuxer.reconcile(policy=ReconcilePolicy.SKIP_EXISTING) == []

    def test_overwrite_returns_differing_content(self):
        text = file_block("src/a.js", "one();\n", lang="js") + "### src/a.js\n```js\ntwo();\n```\n"
        demuxer, _ = run([text])
        recovered = demuxer.reconcile(policy=ReconcilePolicy.OVERWRITE)
        assert [(e.path, e.content) for e in recovered] == [("src/a.js", "two();\n")]

    def test_overwrite_skips_identical_content(self):
        demuxer, _ = run([STREAM])
        assert demuxer.reconcile(policy=ReconcilePolicy.OVERWRITE) == []


class TestNormalizeBlockPath:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("src/App.jsx", "src/App.jsx"),
            ("./src/App.jsx", "src/App.jsx"),
            ("/src/App.jsx", "src/App.jsx"),
            ("src//components/./Nav.jsx", "src/components/Nav.jsx"),
            ("src\\App.jsx", "src/App.jsx"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_block_path(raw) == expected

    @pytest.mark.parametrize("raw", ["../x.js", "src/../../x.js", "", "./"])
    def test_rejects(self, raw):
        assert normalize_block_path(raw) is None
