"""Static analyzer using tree-sitter to resolve package bindings and references.

Each language analyzer parses one file, collects the local names bound by
imports of the target package, then walks the tree classifying every
later reference to those names by its syntactic role. Resolution is
name based: shadowing and re-exports are not tracked.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Query, QueryCursor

from bumpguard.core.models import Ecosystem, UsageKind
from bumpguard.errors import UnscannableFileError

MAX_SNIPPET_LENGTH = 200

# Distribution names whose import name cannot be derived mechanically
KNOWN_IMPORT_NAMES: dict[str, list[str]] = {
    "pyyaml": ["yaml"],
    "pillow": ["PIL"],
    "beautifulsoup4": ["bs4"],
    "scikit-learn": ["sklearn"],
    "python-dateutil": ["dateutil"],
    "opencv-python": ["cv2"],
    "pyjwt": ["jwt"],
    "protobuf": ["google.protobuf"],
    "msgpack-python": ["msgpack"],
    "attrs": ["attr", "attrs"],
}


@dataclass(frozen=True)
class ImportBinding:
    """A local name introduced by importing the target package."""

    local_name: str
    module: str
    imported_name: str | None
    line: int


@dataclass(frozen=True)
class SourceUsage:
    """A reference found in one file, before path context is attached."""

    line: int
    column: int
    kind: UsageKind
    snippet: str
    symbol: str | None = None


@dataclass
class FileAnalysis:
    """Everything one file contributes to a usage scan."""

    bindings: list[ImportBinding] = field(default_factory=list)
    usages: list[SourceUsage] = field(default_factory=list)
    has_dynamic_import: bool = False


def node_text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def string_value(node: Node) -> str:
    """Strip the quotes from a string literal node."""
    return node_text(node).strip("'\"`")


def walk(root: Node):
    """Yield every node below ``root`` in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def matches_npm_package(specifier: str, package: str) -> bool:
    """Check whether an import specifier refers to a package or a subpath of it."""
    return specifier == package or specifier.startswith(package + "/")


def python_module_names(package: str) -> list[str]:
    """Import names a PyPI distribution is expected to provide."""
    lowered = package.lower()
    names = list(KNOWN_IMPORT_NAMES.get(lowered, []))
    normalized = lowered.replace("-", "_").replace(".", "_")
    if normalized not in names:
        names.append(normalized)
    return names


def matches_python_module(module: str, package: str) -> bool:
    return any(
        module == name or module.startswith(name + ".")
        for name in python_module_names(package)
    )


class BaseLanguageAnalyzer(ABC):
    """Base class for language-specific analyzers."""

    # File extensions this analyzer handles
    file_extensions: ClassVar[list[str]] = []

    # Ecosystem whose packages this analyzer resolves
    ecosystem: ClassVar[Ecosystem]

    def can_analyze(self, file_path: Path) -> bool:
        """Check if this analyzer can handle the file.

        Args:
            file_path: Path to the file.

        Returns:
            True if this analyzer handles the file type.
        """
        return file_path.suffix.lower() in self.file_extensions

    @abstractmethod
    def language_for(self, file_path: Path) -> Language:
        """Grammar used to parse a given file."""
        ...

    @abstractmethod
    def analyze(self, file_path: Path, content: str, package_name: str) -> FileAnalysis:
        """Find imports of ``package_name`` and every reference to their bindings.

        Args:
            file_path: Path of the file, used to choose the grammar.
            content: Decoded file content.
            package_name: Package whose usage is being resolved.

        Returns:
            Bindings, usages and the dynamic-import flag for the file.

        Raises:
            UnscannableFileError: If the file cannot be parsed at all.
        """
        ...

    def parse(self, file_path: Path, content: str) -> Node:
        # A parser per call keeps analyzers safe to share across worker threads
        parser = Parser(self.language_for(file_path))
        tree = parser.parse(content.encode("utf-8"))
        root = tree.root_node
        if root.type == "ERROR" or (root.has_error and not root.named_children):
            raise UnscannableFileError(str(file_path), "syntax tree could not be built")
        return root

    @staticmethod
    def snippet(lines: list[str], line: int) -> str:
        if 0 < line <= len(lines):
            return lines[line - 1].strip()[:MAX_SNIPPET_LENGTH]
        return ""


class JavaScriptAnalyzer(BaseLanguageAnalyzer):
    """Analyzer for JavaScript and TypeScript, including JSX and TSX."""

    file_extensions: ClassVar[list[str]] = [".js", ".jsx", ".mjs", ".cjs", ".ts", ".mts", ".cts", ".tsx"]
    ecosystem: ClassVar[Ecosystem] = Ecosystem.NPM

    MODULE_QUERY = """
        (import_statement
            source: (string) @source) @import

        (export_statement
            source: (string) @source) @export

        (call_expression
            function: (identifier) @fn
            arguments: (arguments (string) @source)) @require
    """

    HERITAGE_TYPES = {"class_heritage", "extends_clause", "implements_clause", "extends_type_clause"}
    TYPE_CONTEXT_TYPES = {
        "type_annotation",
        "type_arguments",
        "generic_type",
        "nested_type_identifier",
        "type_query",
        "union_type",
        "intersection_type",
        "array_type",
        "return_type",
    }
    JSX_ELEMENT_TYPES = {"jsx_opening_element", "jsx_self_closing_element"}

    def __init__(self) -> None:
        """Initialize grammars and queries for every dialect."""
        self._languages = {
            "javascript": Language(tree_sitter_javascript.language()),
            "typescript": Language(tree_sitter_typescript.language_typescript()),
            "tsx": Language(tree_sitter_typescript.language_tsx()),
        }
        self._queries = {
            name: Query(language, self.MODULE_QUERY)
            for name, language in self._languages.items()
        }

    def _dialect(self, file_path: Path) -> str:
        suffix = file_path.suffix.lower()
        if suffix == ".tsx":
            return "tsx"
        if suffix in (".ts", ".mts", ".cts"):
            return "typescript"
        return "javascript"

    def language_for(self, file_path: Path) -> Language:
        return self._languages[self._dialect(file_path)]

    def analyze(self, file_path: Path, content: str, package_name: str) -> FileAnalysis:
        root = self.parse(file_path, content)
        lines = content.splitlines()
        result = FileAnalysis()
        declared: set[tuple[int, int]] = set()

        captures = QueryCursor(self._queries[self._dialect(file_path)]).captures(root)

        for statement in captures.get("import", []) + captures.get("export", []):
            source = statement.child_by_field_name("source")
            if source is None or not matches_npm_package(string_value(source), package_name):
                continue
            line = statement.start_point[0] + 1
            result.usages.append(
                SourceUsage(line, statement.start_point[1], UsageKind.IMPORT, self.snippet(lines, line), package_name)
            )
            if statement.type == "import_statement":
                self._collect_import_bindings(statement, string_value(source), result, declared)

        for call in captures.get("require", []):
            function = call.child_by_field_name("function")
            if node_text(function) != "require":
                continue
            source = self._first_string_argument(call)
            if source is None or not matches_npm_package(string_value(source), package_name):
                continue
            line = call.start_point[0] + 1
            result.usages.append(
                SourceUsage(line, call.start_point[1], UsageKind.IMPORT, self.snippet(lines, line), package_name)
            )
            self._collect_declarator_bindings(call, string_value(source), result, declared)

        for node in walk(root):
            if node.type == "call_expression":
                function = node.child_by_field_name("function")
                if function is not None and function.type == "import":
                    source = self._first_string_argument(node)
                    if source is not None and matches_npm_package(string_value(source), package_name):
                        result.has_dynamic_import = True
                        line = node.start_point[0] + 1
                        result.usages.append(
                            SourceUsage(line, node.start_point[1], UsageKind.IMPORT, self.snippet(lines, line), package_name)
                        )
                        self._collect_declarator_bindings(node, string_value(source), result, declared)

        names = {binding.local_name for binding in result.bindings}
        if not names:
            return result

        for node in walk(root):
            if node.type not in ("identifier", "type_identifier"):
                continue
            position = (node.start_byte, node.end_byte)
            if position in declared:
                continue
            name = node_text(node)
            if name not in names or self._inside_module_statement(node):
                continue
            kind, symbol = self._classify(node, name)
            line = node.start_point[0] + 1
            result.usages.append(SourceUsage(line, node.start_point[1], kind, self.snippet(lines, line), symbol))

        return result

    def _first_string_argument(self, call: Node) -> Node | None:
        arguments = call.child_by_field_name("arguments")
        if arguments is None:
            return None
        for child in arguments.named_children:
            return child if child.type == "string" else None
        return None

    def _bind(
        self,
        result: FileAnalysis,
        declared: set[tuple[int, int]],
        name_node: Node,
        module: str,
        imported_name: str | None,
    ) -> None:
        declared.add((name_node.start_byte, name_node.end_byte))
        result.bindings.append(
            ImportBinding(node_text(name_node), module, imported_name, name_node.start_point[0] + 1)
        )

    def _collect_import_bindings(
        self,
        statement: Node,
        module: str,
        result: FileAnalysis,
        declared: set[tuple[int, int]],
    ) -> None:
        for clause in statement.named_children:
            if clause.type != "import_clause":
                continue
            for child in clause.named_children:
                if child.type == "identifier":
                    # import React from 'react'
                    self._bind(result, declared, child, module, "default")
                elif child.type == "namespace_import":
                    # import * as path from 'path'
                    for ident in child.named_children:
                        if ident.type == "identifier":
                            self._bind(result, declared, ident, module, "*")
                elif child.type == "named_imports":
                    # import { a, b as c } from 'pkg'
                    for specifier in child.named_children:
                        if specifier.type != "import_specifier":
                            continue
                        name = specifier.child_by_field_name("name")
                        alias = specifier.child_by_field_name("alias")
                        local = alias or name
                        if local is not None:
                            self._bind(result, declared, local, module, string_value(name) if name else None)

    def _collect_declarator_bindings(
        self,
        call: Node,
        module: str,
        result: FileAnalysis,
        declared: set[tuple[int, int]],
    ) -> None:
        """Bind names assigned from ``require()`` or ``await import()``."""
        node = call
        member: str | None = None
        parent = node.parent
        while parent is not None and parent.type in ("await_expression", "parenthesized_expression", "member_expression"):
            if parent.type == "member_expression" and member is None:
                member = node_text(parent.child_by_field_name("property"))
            node = parent
            parent = node.parent

        if parent is None or parent.type != "variable_declarator":
            return

        target = parent.child_by_field_name("name")
        if target is None:
            return

        if target.type == "identifier":
            self._bind(result, declared, target, module, member)
        elif target.type == "object_pattern":
            for child in target.named_children:
                if child.type == "shorthand_property_identifier_pattern":
                    self._bind(result, declared, child, module, node_text(child))
                elif child.type == "pair_pattern":
                    key = child.child_by_field_name("key")
                    value = child.child_by_field_name("value")
                    if value is not None and value.type == "identifier":
                        self._bind(result, declared, value, module, node_text(key))

    def _inside_module_statement(self, node: Node) -> bool:
        parent = node.parent
        while parent is not None:
            if parent.type in ("import_statement", "export_statement") and parent.child_by_field_name("source"):
                return True
            if parent.type in ("program", "statement_block"):
                return False
            parent = parent.parent
        return False

    def _classify(self, node: Node, name: str) -> tuple[UsageKind, str]:
        if node.type == "type_identifier":
            return UsageKind.TYPE_REFERENCE, name

        # Climb through member chains so `Base.Component` resolves as a whole
        top = node
        symbol = name
        parent = node.parent
        while parent is not None and parent.type == "member_expression" and parent.child_by_field_name("object") == top:
            prop = parent.child_by_field_name("property")
            if prop is not None:
                symbol = f"{symbol}.{node_text(prop)}"
            top = parent
            parent = parent.parent

        if parent is None:
            return UsageKind.OTHER, symbol

        ancestor: Node | None = parent
        for _ in range(3):
            if ancestor is None:
                break
            if ancestor.type in self.HERITAGE_TYPES:
                return UsageKind.EXTENDS, symbol
            ancestor = ancestor.parent

        if parent.type in self.TYPE_CONTEXT_TYPES:
            return UsageKind.TYPE_REFERENCE, symbol
        if parent.type == "call_expression" and parent.child_by_field_name("function") == top:
            return UsageKind.FUNCTION_CALL, symbol
        if parent.type == "new_expression" and parent.child_by_field_name("constructor") == top:
            return UsageKind.CONSTRUCTOR, symbol
        if parent.type in self.JSX_ELEMENT_TYPES:
            return UsageKind.FUNCTION_CALL, symbol
        if top is not node:
            return UsageKind.PROPERTY_ACCESS, symbol
        return UsageKind.OTHER, symbol


class PythonAnalyzer(BaseLanguageAnalyzer):
    """Analyzer for Python code."""

    file_extensions: ClassVar[list[str]] = [".py", ".pyi"]
    ecosystem: ClassVar[Ecosystem] = Ecosystem.PYPI

    MODULE_QUERY = """
        (import_statement) @import
        (import_from_statement) @from_import
    """

    DYNAMIC_IMPORT_FUNCTIONS = {"importlib.import_module", "import_module", "__import__"}

    def __init__(self) -> None:
        """Initialize Python analyzer with tree-sitter."""
        self.language = Language(tree_sitter_python.language())
        self._query = Query(self.language, self.MODULE_QUERY)

    def language_for(self, file_path: Path) -> Language:
        return self.language

    def analyze(self, file_path: Path, content: str, package_name: str) -> FileAnalysis:
        root = self.parse(file_path, content)
        lines = content.splitlines()
        result = FileAnalysis()
        declared: set[tuple[int, int]] = set()

        captures = QueryCursor(self._query).captures(root)

        for statement in captures.get("import", []):
            self._collect_import(statement, package_name, lines, result, declared)
        for statement in captures.get("from_import", []):
            self._collect_from_import(statement, package_name, lines, result, declared)

        for node in walk(root):
            if node.type == "call":
                function = node_text(node.child_by_field_name("function"))
                if function in self.DYNAMIC_IMPORT_FUNCTIONS:
                    arguments = node.child_by_field_name("arguments")
                    first = arguments.named_children[0] if arguments and arguments.named_children else None
                    if first is not None and first.type == "string" and matches_python_module(
                        self._string_content(first), package_name
                    ):
                        result.has_dynamic_import = True
                        line = node.start_point[0] + 1
                        result.usages.append(
                            SourceUsage(line, node.start_point[1], UsageKind.IMPORT, self.snippet(lines, line), package_name)
                        )

        names = {binding.local_name for binding in result.bindings}
        if not names:
            return result

        for node in walk(root):
            if node.type != "identifier":
                continue
            if (node.start_byte, node.end_byte) in declared:
                continue
            name = node_text(node)
            if name not in names or self._inside_import(node):
                continue
            # `obj.name` where name is only an attribute of something else
            parent = node.parent
            if parent is not None and parent.type == "attribute" and parent.child_by_field_name("attribute") == node:
                continue
            kind, symbol = self._classify(node, name)
            line = node.start_point[0] + 1
            result.usages.append(SourceUsage(line, node.start_point[1], kind, self.snippet(lines, line), symbol))

        return result

    def _string_content(self, node: Node) -> str:
        parts = [node_text(child) for child in node.named_children if child.type == "string_content"]
        if parts:
            return "".join(parts)
        return node_text(node).strip("'\"")

    def _record_import(self, statement: Node, package_name: str, lines: list[str], result: FileAnalysis) -> None:
        line = statement.start_point[0] + 1
        result.usages.append(
            SourceUsage(line, statement.start_point[1], UsageKind.IMPORT, self.snippet(lines, line), package_name)
        )

    def _collect_import(
        self,
        statement: Node,
        package_name: str,
        lines: list[str],
        result: FileAnalysis,
        declared: set[tuple[int, int]],
    ) -> None:
        matched = False
        for child in statement.children_by_field_name("name"):
            if child.type == "aliased_import":
                module = node_text(child.child_by_field_name("name"))
                local = child.child_by_field_name("alias")
            else:
                module = node_text(child)
                local = child.named_children[0] if child.named_children else child
            if not matches_python_module(module, package_name) or local is None:
                continue
            matched = True
            declared.add((local.start_byte, local.end_byte))
            result.bindings.append(ImportBinding(node_text(local), module, None, statement.start_point[0] + 1))
        if matched:
            self._record_import(statement, package_name, lines, result)

    def _collect_from_import(
        self,
        statement: Node,
        package_name: str,
        lines: list[str],
        result: FileAnalysis,
        declared: set[tuple[int, int]],
    ) -> None:
        module_node = statement.child_by_field_name("module_name")
        if module_node is None or module_node.type == "relative_import":
            return
        module = node_text(module_node)
        if not matches_python_module(module, package_name):
            return

        self._record_import(statement, package_name, lines, result)
        for child in statement.children_by_field_name("name"):
            if child.type == "aliased_import":
                imported = node_text(child.child_by_field_name("name"))
                local = child.child_by_field_name("alias")
            else:
                imported = node_text(child)
                local = child.named_children[-1] if child.named_children else child
            if local is None:
                continue
            declared.add((local.start_byte, local.end_byte))
            result.bindings.append(ImportBinding(node_text(local), module, imported, statement.start_point[0] + 1))

    def _inside_import(self, node: Node) -> bool:
        parent = node.parent
        while parent is not None:
            if parent.type in ("import_statement", "import_from_statement", "future_import_statement"):
                return True
            if parent.type in ("module", "block"):
                return False
            parent = parent.parent
        return False

    def _classify(self, node: Node, name: str) -> tuple[UsageKind, str]:
        top = node
        symbol = name
        parent = node.parent
        while parent is not None and parent.type == "attribute" and parent.child_by_field_name("object") == top:
            symbol = f"{symbol}.{node_text(parent.child_by_field_name('attribute'))}"
            top = parent
            parent = parent.parent

        if parent is None:
            return UsageKind.OTHER, symbol

        if parent.type == "argument_list" and parent.parent is not None and parent.parent.type == "class_definition":
            return UsageKind.EXTENDS, symbol

        ancestor: Node | None = parent
        while ancestor is not None and ancestor.type not in ("module", "block", "expression_statement"):
            if ancestor.type == "type":
                return UsageKind.TYPE_REFERENCE, symbol
            ancestor = ancestor.parent

        if parent.type == "call" and parent.child_by_field_name("function") == top:
            leaf = symbol.rsplit(".", 1)[-1]
            if leaf[:1].isupper():
                return UsageKind.CONSTRUCTOR, symbol
            return UsageKind.FUNCTION_CALL, symbol
        if parent.type == "decorator":
            return UsageKind.FUNCTION_CALL, symbol
        if top is not node:
            return UsageKind.PROPERTY_ACCESS, symbol
        return UsageKind.OTHER, symbol


def default_analyzers() -> dict[Ecosystem, BaseLanguageAnalyzer]:
    """Build one analyzer per supported ecosystem."""
    return {
        Ecosystem.NPM: JavaScriptAnalyzer(),
        Ecosystem.PYPI: PythonAnalyzer(),
    }
