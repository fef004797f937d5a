"""Tests for import specifier extraction and relative resolution."""

import asyncio
import tempfile
from pathlib import Path

from starbase.pipeline.imports_scan import (
    extract_specifiers,
    is_relative,
    resolve_all,
    resolve_imports,
    resolve_specifier,
)
from starbase.utils import discover_files


def _write(tmpdir: Path, name: str, content: str = "") -> Path:
    p = tmpdir / name
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content)
    return p.resolve()


def _known(ws: Path) -> set[Path]:
    return set(discover_files(ws))


# ── Specifier extraction ────────────────────────────────────────────────


def test_static_import_forms():
    src = '''
import a from './a';
import { b, c } from "./b";
import * as d from './d';
import './side-effect';
export { e } from './e';
export * from '../f';
'''
    specs = extract_specifiers(Path("x.js"), src)
    assert specs == {"./a", "./b", "./d", "./side-effect", "./e", "../f"}


def test_dynamic_import_and_require():
    src = '''
const util = require('./util');
async function load() {
  const mod = await import('./lazy');
  return mod;
}
'''
    specs = extract_specifiers(Path("x.js"), src)
    assert {"./util", "./lazy"} <= specs


def test_typescript_type_imports():
    src = '''
import type { Props } from './types';
import { render } from './render';
export interface Thing { name: string }
const x: number = 1;
'''
    specs = extract_specifiers(Path("x.ts"), src)
    assert {"./types", "./render"} <= specs


def test_tsx_uses_regex_scan():
    src = '''
import React from 'react';
import Button from './Button';
import './styles';
export const App = () => <Button label="hi" />;
'''
    specs = extract_specifiers(Path("App.tsx"), src)
    assert "./Button" in specs
    assert "./styles" in specs


def test_syntax_error_falls_back_to_regex():
    src = '''
import { helper } from './helper';
const = ;
function (
'''
    specs = extract_specifiers(Path("broken.ts"), src)
    assert "./helper" in specs


def test_is_relative():
    assert is_relative("./a")
    assert is_relative("../a/b")
    assert not is_relative("react")
    assert not is_relative("@scope/pkg")
    assert not is_relative("/abs/path")
    assert not is_relative(".hidden")


# ── Resolution ──────────────────────────────────────────────────────────


def test_resolution_order_exact_then_extension_then_index():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        main = _write(ws, "main.js")
        exact = _write(ws, "exact.js")
        ext = _write(ws, "util.ts")
        idx = _write(ws, "lib/index.tsx")
        known = _known(ws)

        assert resolve_specifier(main, "./exact.js", known) == exact
        assert resolve_specifier(main, "./util", known) == ext
        assert resolve_specifier(main, "./lib", known) == idx
        assert resolve_specifier(main, "./missing", known) is None


def test_extension_order_prefers_js():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        main = _write(ws, "main.ts")
        js = _write(ws, "dup.js")
        _write(ws, "dup.ts")
        assert resolve_specifier(main, "./dup", _known(ws)) == js


def test_parent_relative_resolution():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        inner = _write(ws, "server/app/render.ts")
        shared = _write(ws, "shared/format.ts")
        assert resolve_specifier(inner, "../../shared/format", _known(ws)) == shared


def test_specifier_outside_known_set_is_dropped():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        main = _write(ws, "src/main.js", "import x from '../../outside';\n")
        assert resolve_imports(main, _known(ws)) == set()


def test_bare_specifiers_produce_no_edges():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        _write(ws, "react.js")
        main = _write(ws, "main.js", "import React from 'react';\nimport x from '/react';\n")
        assert resolve_imports(main, _known(ws)) == set()


def test_repeated_imports_collapse_to_one_edge():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        b = _write(ws, "b.js")
        a = _write(ws, "a.js", '''
import x from './b';
import { y } from './b.js';
const z = require('./b');
''')
        assert resolve_imports(a, _known(ws)) == {b}


def test_unreadable_file_yields_no_imports():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        missing = ws.resolve() / "gone.js"
        assert resolve_imports(missing, set()) == set()


def test_resolve_all_keeps_only_files_with_edges():
    with tempfile.TemporaryDirectory() as d:
        ws = Path(d)
        a = _write(ws, "a.js", "import './b';\nimport './c.js';\n")
        b = _write(ws, "b.js", "export const b = 1;\n")
        c = _write(ws, "c.js", "import _ from 'lodash';\n")
        result = asyncio.run(resolve_all(discover_files(ws), concurrency=2))
        assert result == {a: {b, c}}
