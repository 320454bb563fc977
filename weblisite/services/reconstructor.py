"""
Template Reconstructor - rebuild a component file that repair could not save

The generated body is discarded. Import lines, single-line useState
declarations, handler names and the props signature are carried over into a
fixed template that always passes the balance checks and ends with a default
export. The root App is rebuilt as a Routes shell that keeps its simple
`<Route path=... element={<Page />} />` pairs.
"""

from __future__ import annotations

import logging
import posixpath
import re

from weblisite.services.balance import is_balanced, scan

logger = logging.getLogger(__name__)

RECONSTRUCTED_MARKER = "// weblisite:reconstructed"

_IMPORT_LINE = re.compile(r"""^\s*import\s+(?:.+?\s+from\s+)?['"][^'"\n]+['"]\s*;?\s*$""")
_STATE_LINE = re.compile(
    r"^\s*const\s+\[\s*(\w+)\s*,\s*(set\w+)\s*\]\s*=\s*((?:React\.)?useState(?:<[^>\n]*>)?\((.*)\))\s*;?\s*$"
)
_HANDLER = re.compile(r"\b(?:const|let|function)\s+(handle\w+)")
_PROPS = re.compile(
    r"function\s+[A-Z]\w*\s*\(\s*(\{[^}\n]*\}|\w+)\s*\)"
    r"|const\s+[A-Z]\w*\s*=\s*\(\s*(\{[^}\n]*\}|\w+)\s*\)\s*=>"
)
_CLASS_NAME = re.compile(r'className="([^"\n]*)"')
_LINK_IMPORT = re.compile(r"import\s*\{[^}]*\bLink\b[^}]*\}\s*from")
_ROUTE = re.compile(r"""<Route\s+path=["']([^"'\n]+)["']\s+element=\{\s*<([A-Z]\w*)\s*/>\s*\}\s*/>""")
_ROUTES_IMPORT = re.compile(r"import\s*\{[^}]*\bRoutes\b[^}]*\}\s*from")

DEFAULT_ROUTES = [("/", "Home"), ("/about", "About"), ("/contact", "Contact")]


def component_name(path: str) -> str:
    """PascalCase component name derived from the file stem"""
    stem = posixpath.splitext(posixpath.basename(path))[0]
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", stem) if p]
    name = "".join(p[0].upper() + p[1:] for p in parts)
    if not name:
        return "Component"
    if name[0].isdigit():
        name = "Component" + name
    return name


def is_reconstructed(content: str) -> bool:
    return content.lstrip().startswith(RECONSTRUCTED_MARKER)


class TemplateReconstructor:
    """Deterministic fallback for component files"""

    def rebuild(self, path: str, content: str) -> str:
        name = component_name(path)
        if name == "App":
            return self.rebuild_app(path, content)
        imports = self._imports(content)
        states = self._states(content)
        props = self._props(content)

        rebuilt = self._render(
            name,
            imports,
            states,
            self._handlers(content, states),
            props,
            self._class_name(content),
            any(_LINK_IMPORT.search(line) for line in imports),
        )
        if not scan(rebuilt).ok:
            # preserved fragments broke the template; fall back to the bare shell
            logger.warning(f"[Reconstructor] Preserved fragments of {path} did not scan cleanly; using bare template")
            rebuilt = self._render(name, [], [], [], "", "container", False)
        logger.info(f"[Reconstructor] Rebuilt {path} as {name}")
        return rebuilt

    def rebuild_app(self, path: str, content: str) -> str:
        """Routes shell for the root App: imports and simple Route pairs survive"""
        routes: list[tuple[str, str]] = []
        for m in _ROUTE.finditer(content):
            if m.groups() not in routes:
                routes.append(m.groups())
        if not routes:
            routes = list(DEFAULT_ROUTES)

        imports = self._imports(content)
        if not any(_ROUTES_IMPORT.search(line) for line in imports):
            imports.insert(0, "import { Routes, Route } from 'react-router-dom';")
        layout = [part for part in ("Navbar", "Footer") if re.search(rf"\b{part}\b", content)]
        for component in [c for _, c in routes] + layout:
            if any(re.search(rf"\b{component}\b", line) for line in imports):
                continue
            folder = "components" if component in layout else "pages"
            imports.append(f"import {component} from './{folder}/{component}';")

        rebuilt = self._render_app(imports, routes, layout)
        if not scan(rebuilt).ok:
            logger.warning(f"[Reconstructor] Preserved fragments of {path} did not scan cleanly; using default routes")
            rebuilt = self._render_app(
                ["import { Routes, Route } from 'react-router-dom';"]
                + [f"import {c} from './pages/{c}';" for _, c in DEFAULT_ROUTES],
                list(DEFAULT_ROUTES),
                [],
            )
        logger.info(f"[Reconstructor] Rebuilt {path} with {len(routes)} route(s)")
        return rebuilt

    def _render_app(self, imports: list[str], routes: list[tuple[str, str]], layout: list[str]) -> str:
        lines = [RECONSTRUCTED_MARKER, *imports, "", "function App() {", "  return ("]
        lines.append('    <div className="flex flex-col min-h-screen">')
        if "Navbar" in layout:
            lines.append("      <Navbar />")
        lines.append('      <main className="flex-grow">')
        lines.append("        <Routes>")
        for route_path, component in routes:
            lines.append(f'          <Route path="{route_path}" element={{<{component} />}} />')
        lines.append("        </Routes>")
        lines.append("      </main>")
        if "Footer" in layout:
            lines.append("      <Footer />")
        lines.extend(["    </div>", "  );", "}", "", "export default App;"])
        return "\n".join(lines) + "\n"

    def _imports(self, content: str) -> list[str]:
        imports: list[str] = []
        for line in content.splitlines():
            if not _IMPORT_LINE.match(line) or not is_balanced(line):
                continue
            line = line.strip()
            if not line.endswith(";"):
                line += ";"
            if line not in imports:
                imports.append(line)
        return imports

    def _states(self, content: str) -> list[tuple[str, str, str, str]]:
        """(name, setter, declaration, initial value) per kept useState line"""
        states = []
        seen = set()
        for line in content.splitlines():
            m = _STATE_LINE.match(line)
            if m is None or "//" in line or not is_balanced(line):
                continue
            value, setter, call, initial = m.groups()
            if setter in seen:
                continue
            seen.add(setter)
            declaration = f"const [{value}, {setter}] = {call};"
            states.append((value, setter, declaration, initial.strip() or "undefined"))
        return states

    def _props(self, content: str) -> str:
        m = _PROPS.search(content)
        if m:
            props = m.group(1) or m.group(2)
            if is_balanced(props):
                return props
        return "props" if re.search(r"\bprops\b", content) else ""

    def _class_name(self, content: str) -> str:
        m = _CLASS_NAME.search(content)
        if m and m.group(1).strip():
            return m.group(1).strip()
        return "container"

    def _handlers(self, content: str, states: list[tuple[str, str, str, str]]) -> list[str]:
        handlers = []
        seen = set()
        for m in _HANDLER.finditer(content):
            handler = m.group(1)
            if handler in seen:
                continue
            seen.add(handler)
            handlers.append(self._handler_body(handler, states))
        return handlers

    def _handler_body(self, handler: str, states: list[tuple[str, str, str, str]]) -> str:
        lowered = handler.lower()
        if "change" in lowered and states:
            setter = states[0][1]
            return (
                f"  const {handler} = (e) => {{\n"
                f"    const {{ name, value }} = e.target;\n"
                f"    {setter}((prev) =>\n"
                f'      prev && typeof prev === "object" ? {{ ...prev, [name]: value }} : value\n'
                f"    );\n"
                f"  }};"
            )
        if "submit" in lowered:
            logged = f", {states[0][0]}" if states else ""
            return (
                f"  const {handler} = (e) => {{\n"
                f"    if (e && e.preventDefault) e.preventDefault();\n"
                f'    console.log("Submitted"{logged});\n'
                f"  }};"
            )
        if "reset" in lowered and states:
            resets = "\n".join(f"    {setter}({initial});" for _, setter, _, initial in states)
            return f"  const {handler} = () => {{\n{resets}\n  }};"
        return (
            f"  const {handler} = (...args) => {{\n"
            f'    console.log("{handler} called", ...args);\n'
            f"  }};"
        )

    def _render(
        self,
        name: str,
        imports: list[str],
        states: list[tuple[str, str, str, str]],
        handlers: list[str],
        props: str,
        class_name: str,
        has_link: bool,
    ) -> str:
        lines = [RECONSTRUCTED_MARKER]
        if states and not any("useState" in line for line in imports):
            if any("React.useState" not in declaration for _, _, declaration, _ in states):
                lines.append("import { useState } from 'react';")
        lines.extend(imports)
        lines.append("")
        lines.append(f"function {name}({props}) {{")
        for _, _, declaration, _ in states:
            lines.append(f"  {declaration}")
        if states:
            lines.append("")
        for handler in handlers:
            lines.append(handler)
            lines.append("")
        lines.append("  return (")
        lines.append(f'    <div className="{class_name}">')
        lines.append("      {/* Rebuilt from a malformed generated body */}")
        if has_link:
            lines.append('      <Link to="/">Home</Link>')
        lines.append("    </div>")
        lines.append("  );")
        lines.append("}")
        lines.append("")
        lines.append(f"export default {name};")
        return "\n".join(lines) + "\n"
