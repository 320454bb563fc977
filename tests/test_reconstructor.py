"""
Tests for the template reconstructor.
"""

import pytest

from weblisite.services.balance import scan
from weblisite.services.reconstructor import (
    RECONSTRUCTED_MARKER,
    TemplateReconstructor,
    component_name,
    is_reconstructed,
)

COUNTER = """import React, { useState } from 'react';
import { Link } from 'react-router-dom';

function Counter({ start, step }) {
  const [count, setCount] = useState(0);
  const [label, setLabel] = useState('');
  const handleReset = () => {
    setCount(0);
  const handleLabelChange = (e) => setLabel(e.target.value);
  function handleClick() {
  return (
    <section className="counter-box">
      <Link to="/">Back</Link>
"""


@pytest.fixture
def rebuilt():
    return TemplateReconstructor().rebuild("src/components/Counter.jsx", COUNTER)


class TestComponentName:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("src/App.tsx", "App"),
            ("src/components/user-profile.jsx", "UserProfile"),
            ("src/pages/about_us.jsx", "AboutUs"),
            ("src/pages/404.jsx", "Component404"),
            ("src/components/nav.bar.jsx", "NavBar"),
            ("src/___.jsx", "Component"),
        ],
    )
    def test_names(self, path, expected):
        assert component_name(path) == expected


class TestRebuild:
    def test_output_is_structurally_valid(self, rebuilt):
        assert scan(rebuilt).ok
        assert is_reconstructed(rebuilt)
        assert rebuilt.startswith(RECONSTRUCTED_MARKER)
        assert rebuilt.rstrip().endswith("export default Counter;")

    def test_imports_are_kept(self, rebuilt):
        assert "import React, { useState } from 'react';" in rebuilt
        assert "import { Link } from 'react-router-dom';" in rebuilt

    def test_state_and_props_are_kept(self, rebuilt):
        assert "function Counter({ start, step }) {" in rebuilt
        assert "const [count, setCount] = useState(0);" in rebuilt
        assert "const [label, setLabel] = useState('');" in rebuilt

    def test_handlers_are_resynthesized(self, rebuilt):
        reset = rebuilt[rebuilt.index("const handleReset") :]
        reset = reset[: reset.index("};")]
        assert "setCount(0);" in reset
        assert "setLabel('');" in reset
        assert "const handleLabelChange = (e) => {" in rebuilt
        assert 'console.log("handleClick called", ...args);' in rebuilt

    def test_class_name_and_link(self, rebuilt):
        assert '<div className="counter-box">' in rebuilt
        assert '<Link to="/">Home</Link>' in rebuilt

    def test_empty_input(self):
        rebuilt = TemplateReconstructor().rebuild("src/Blank.jsx", "")
        assert scan(rebuilt).ok
        assert "function Blank() {" in rebuilt
        assert '<div className="container">' in rebuilt

    def test_state_import_is_added(self):
        content = "function A() {\n  const [open, setOpen] = useState(false);\n  return (<div>\n"
        rebuilt = TemplateReconstructor().rebuild("src/A.jsx", content)
        assert "import { useState } from 'react';" in rebuilt

    def test_deterministic(self):
        reconstructor = TemplateReconstructor()
        assert reconstructor.rebuild("src/A.jsx", COUNTER) == reconstructor.rebuild("src/A.jsx", COUNTER)


class TestIsReconstructed:
    def test_plain_file(self):
        assert not is_reconstructed("export default function A() {}\n")


# ═══════════════════════════════════════════════════════════════════
#  Root App
# ═══════════════════════════════════════════════════════════════════

BROKEN_APP = """import { Routes, Route } from 'react-router-dom';
import Navbar from './components/Navbar';
import Home from './pages/Home';

function App() {
  return (
    <div>
      <Navbar />
      <Routes>
        <Route path="/" element={<Home />} />
        <Route path="/pricing" element={<Pricing />} />
      </Routes>
    </section>
"""


class TestRebuildApp:
    def test_routes_are_kept(self):
        rebuilt = TemplateReconstructor().rebuild("src/App.jsx", BROKEN_APP)
        assert scan(rebuilt).ok
        assert is_reconstructed(rebuilt)
        assert '<Route path="/" element={<Home />} />' in rebuilt
        assert '<Route path="/pricing" element={<Pricing />} />' in rebuilt
        assert "<Navbar />" in rebuilt
        assert "<Footer />" not in rebuilt
        assert rebuilt.rstrip().endswith("export default App;")

    def test_missing_page_imports_are_added(self):
        rebuilt = TemplateReconstructor().rebuild("src/App.jsx", BROKEN_APP)
        assert "import Home from './pages/Home';" in rebuilt
        assert "import Pricing from './pages/Pricing';" in rebuilt
        assert rebuilt.count("import { Routes, Route } from 'react-router-dom';") == 1

    def test_default_routes_without_any(self):
        rebuilt = TemplateReconstructor().rebuild("src/App.jsx", "function App() {\n  return (\n    <div>\n")
        for route_path, page in (("/", "Home"), ("/about", "About"), ("/contact", "Contact")):
            assert f'<Route path="{route_path}" element={{<{page} />}} />' in rebuilt
            assert f"import {page} from './pages/{page}';" in rebuilt
        assert "import { Routes, Route } from 'react-router-dom';" in rebuilt
