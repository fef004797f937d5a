"""Extract relative import specifiers from JS/TS sources and resolve them to files.

Each file runs an ordered plan of specifier strategies whose results are
unioned. Plain JS/TS files use a tree-sitter parse plus a require() scan;
JSX/TSX files, and any file whose parse fails, use three regex scans.
Only ``./`` and ``../`` specifiers are resolved; everything else names an
external package and is ignored.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Parser

from starbase.errors import ParseDegraded
from starbase.utils import SOURCE_EXTENSIONS

log = logging.getLogger(__name__)

# Extensions handled by the structured parser, and the grammar for each
STRUCTURED_GRAMMARS: dict[str, str] = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
}

REQUIRE_RE = re.compile(r"""require\(\s*['"](\.[^'"]+)['"]\s*\)""")
# from './path' (covers import ... from and export ... from)
FROM_RE = re.compile(r"""\bfrom\s+['"](\.[^'"]+)['"]""")
BARE_IMPORT_RE = re.compile(r"""\bimport\s+['"](\.[^'"]+)['"]""")


class SpecifierStrategy(Protocol):
    name: str

    def extract(self, text: str) -> set[str]: ...


class RegexStrategy:
    """Collect the first group of every match of a pattern."""

    def __init__(self, name: str, pattern: re.Pattern[str]) -> None:
        self.name = name
        self.pattern = pattern

    def extract(self, text: str) -> set[str]:
        return {m.group(1) for m in self.pattern.finditer(text)}


@lru_cache(maxsize=None)
def _language(grammar: str) -> Language:
    if grammar == "typescript":
        return Language(tsts.language_typescript())
    return Language(tsjs.language())


class TreeSitterStrategy:
    """Static and dynamic import specifiers from a tree-sitter parse.

    Parsers are not shared between threads; each thread gets its own.
    """

    def __init__(self, grammar: str) -> None:
        self.name = f"tree-sitter:{grammar}"
        self.grammar = grammar
        self._local = threading.local()

    def _parser(self) -> Parser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(_language(self.grammar))
            self._local.parser = parser
        return parser

    def extract(self, text: str) -> set[str]:
        tree = self._parser().parse(text.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            raise ParseDegraded(f"{self.grammar} parse produced syntax errors")

        specs: set[str] = set()
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type in ("import_statement", "export_statement"):
                source = node.child_by_field_name("source")
                if source is not None and source.type == "string":
                    specs.add(_string_value(source))
            elif node.type == "call_expression":
                func = node.child_by_field_name("function")
                args = node.child_by_field_name("arguments")
                if func is not None and func.type == "import" and args is not None:
                    literal = next(iter(args.named_children), None)
                    if literal is not None and literal.type == "string":
                        specs.add(_string_value(literal))
            stack.extend(node.children)
        return specs


def _string_value(node) -> str:
    return node.text.decode("utf-8", errors="replace")[1:-1]


REQUIRE_STRATEGY = RegexStrategy("require", REQUIRE_RE)
REGEX_PLAN: list[SpecifierStrategy] = [
    RegexStrategy("from", FROM_RE),
    RegexStrategy("bare-import", BARE_IMPORT_RE),
    REQUIRE_STRATEGY,
]
_STRUCTURED: dict[str, TreeSitterStrategy] = {
    grammar: TreeSitterStrategy(grammar) for grammar in set(STRUCTURED_GRAMMARS.values())
}


def _run_plan(plan: list[SpecifierStrategy], text: str) -> set[str]:
    specs: set[str] = set()
    for strategy in plan:
        specs |= strategy.extract(text)
    return specs


def extract_specifiers(path: Path, text: str) -> set[str]:
    """All module specifiers found in text, using the plan for path's extension."""
    grammar = STRUCTURED_GRAMMARS.get(path.suffix)
    if grammar is not None:
        try:
            return _run_plan([_STRUCTURED[grammar], REQUIRE_STRATEGY], text)
        except ParseDegraded as exc:
            log.debug("Structured parse degraded for %s: %s", path, exc)
        except Exception:
            log.debug("Structured parse failed for %s", path, exc_info=True)
    return _run_plan(REGEX_PLAN, text)


def is_relative(spec: str) -> bool:
    return spec.startswith("./") or spec.startswith("../")


def resolve_specifier(from_file: Path, spec: str, known: set[Path]) -> Path | None:
    """Resolve a relative specifier against the known file set.

    Tries the exact path, then each source extension appended, then an
    ``index`` file inside the path for each extension.
    """
    target = os.path.normpath(os.path.join(from_file.parent, spec))
    candidates = [target]
    candidates.extend(target + ext for ext in SOURCE_EXTENSIONS)
    candidates.extend(os.path.join(target, f"index{ext}") for ext in SOURCE_EXTENSIONS)
    for candidate in candidates:
        path = Path(candidate)
        if path in known:
            return path
    return None


def resolve_imports(path: Path, known: set[Path]) -> set[Path]:
    """Files imported by path through resolvable relative specifiers."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        log.debug("Cannot read %s: %s", path, exc)
        return set()

    imports: set[Path] = set()
    for spec in extract_specifiers(path, text):
        if not is_relative(spec):
            continue
        resolved = resolve_specifier(path, spec, known)
        if resolved is not None:
            imports.add(resolved)
    return imports


async def resolve_all(files: list[Path], *, concurrency: int = 8) -> dict[Path, set[Path]]:
    """Resolve every file's imports in worker threads.

    Returns a map containing only files with at least one resolved import.
    """
    known = set(files)
    semaphore = asyncio.Semaphore(concurrency)

    async def _one(path: Path) -> tuple[Path, set[Path]]:
        async with semaphore:
            return path, await asyncio.to_thread(resolve_imports, path, known)

    results = await asyncio.gather(*(_one(f) for f in files))
    return {path: imports for path, imports in results if imports}
