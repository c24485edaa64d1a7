import pytest
from inline_snapshot import snapshot
from tree_sitter import Node

from repo_function_analyzer.extraction import patterns
from repo_function_analyzer.extraction.extractor import StructuralExtractor, compute_dependencies
from repo_function_analyzer.extraction.models import ConstructCandidate, ConstructDependencies, ExtractionResult
from repo_function_analyzer.extraction.patterns import PatternMatch, extract_with_patterns
from repo_function_analyzer.extraction.syntax_tree import SyntaxTreeWalker

MODULE_SOURCE = """import { fetchJson } from './services/githubService.js';
import dayjs from 'dayjs';
import * as path from "path";

export const formatDate = (date) => dayjs(date).format('YYYY-MM-DD');

export function loadRepo(owner) {
  return githubService.fetchJson(owner);
}
"""

CLASS_SOURCE = """export class Counter extends Component {
  constructor(props) {
    super(props);
    this.count = 0;
  }

  static create() {
    return new Counter({});
  }

  get value() {
    return this.count;
  }

  async increment(step) {
    await this.save(step);
  }
}
"""

THREE_FUNCTIONS_SOURCE = """function first(a) {
  return a;
}

function second(b) {
  return b;
}

function third(c) {
  return c;
}
"""

RECURSIVE_SOURCE = """function sum(values) {
  if (values.length === 0) return 0;
  return values[0] + sum(values.slice(1));
}
"""


@pytest.fixture
def extractor() -> StructuralExtractor:
    return StructuralExtractor()


def names(result: ExtractionResult) -> list[tuple[str, str]]:
    return [(candidate.kind, candidate.name) for candidate in result.candidates]


def dependencies_of(result: ExtractionResult, text: str, name: str) -> ConstructDependencies:
    candidate: ConstructCandidate = next(candidate for candidate in result.candidates if candidate.name == name)
    return compute_dependencies(candidate=candidate, text=text, imports=result.imports)


class TestSyntaxTree:
    def test_arrow_function_name(self, extractor: StructuralExtractor):
        result = extractor.extract("const foo = () => {}", path="src/foo.js")

        assert result.strategy == "syntax_tree"
        assert names(result) == [("function", "foo")]
        assert result.candidates[0].flags.is_arrow

    def test_module(self, extractor: StructuralExtractor):
        result = extractor.extract(MODULE_SOURCE, path="src/utils.js")

        assert result.strategy == "syntax_tree"
        assert names(result) == [("function", "formatDate"), ("function", "loadRepo")]
        assert result.import_paths == ["./services/githubService.js", "dayjs", "path"]
        assert all(candidate.flags.is_exported for candidate in result.candidates)
        assert result.candidates[0].parameters == ["date"]

    def test_class(self, extractor: StructuralExtractor):
        result = extractor.extract(CLASS_SOURCE, path="src/Counter.jsx")

        assert result.strategy == "syntax_tree"
        assert names(result) == snapshot(
            [("class", "Counter"), ("method", "constructor"), ("accessor", "value"), ("method", "increment")]
        )

        counter = result.candidates[0]
        assert counter.superclass == "Component"
        assert counter.methods == ["public constructor", "public static create", "public value", "public increment"]
        assert counter.flags.is_exported
        assert result.candidates[2].flags.is_getter
        assert result.candidates[3].flags.is_async
        assert result.candidates[3].parameters == ["step"]

    def test_typescript_class(self, extractor: StructuralExtractor):
        source = """export class UserStore implements Store, Disposable {
  private cache: Map<string, User> = new Map();

  public async load(id: string): Promise<User> {
    return this.fetch(id);
  }

  private static key(id: string): string {
    return `user:${id}`;
  }
}
"""
        result = extractor.extract(source, path="src/stores/UserStore.ts")

        assert result.strategy == "syntax_tree"
        assert names(result) == [("class", "UserStore"), ("method", "load")]
        assert result.candidates[0].interfaces == ["Store", "Disposable"]
        assert result.candidates[0].methods == ["public load", "private static key"]
        assert result.candidates[1].parameters == ["id: string"]

    def test_hook_binding(self, extractor: StructuralExtractor):
        result = extractor.extract("export function App() {\n  const theme = useTheme();\n  return theme;\n}\n", path="src/App.jsx")

        assert names(result) == [("function", "App"), ("hookBinding", "theme")]


class TestPatternFallback:
    def test_falls_back_on_syntax_errors(self, extractor: StructuralExtractor):
        source = "export async function loadUser(id) {\n  const response = await fetchJson(`/users/${id}`);\n  return normalize(response);\n}\n\nfunction broken(a, {\n"

        result = extractor.extract(source, path="src/api.js")

        assert result.strategy == "patterns"
        assert names(result) == [("function", "loadUser")]
        assert result.candidates[0].flags.is_async
        assert dependencies_of(result, source, "loadUser").internal_calls == ["fetchJson", "normalize"]


class TestComputeDependencies:
    def test_self_reference_is_excluded(self, extractor: StructuralExtractor):
        result = extractor.extract(RECURSIVE_SOURCE, path="src/sum.js")

        dependencies = dependencies_of(result, RECURSIVE_SOURCE, "sum")

        assert "sum" not in dependencies.internal_calls
        assert dependencies.internal_calls == ["slice"]

    def test_imports_and_external_calls(self, extractor: StructuralExtractor):
        result = extractor.extract(MODULE_SOURCE, path="src/utils.js")

        assert dependencies_of(result, MODULE_SOURCE, "formatDate") == snapshot(
            ConstructDependencies(imports=["dayjs"], internal_calls=["dayjs", "format"], external_calls=["dayjs"])
        )
        assert dependencies_of(result, MODULE_SOURCE, "loadRepo") == snapshot(
            ConstructDependencies(imports=["./services/githubService.js"], internal_calls=["fetchJson"], external_calls=[])
        )

    def test_member_calls_on_imported_bindings(self, extractor: StructuralExtractor):
        source = """import axios from 'axios';
import * as path from 'path';
import { readFile } from 'fs/promises';

export async function loadConfig(directory) {
  const file = path.posix.join(directory, 'config.json');
  const local = await readFile(file, 'utf-8');
  const remote = await axios.get(`/config?file=${path.basename(file)}`);
  return merge(JSON.parse(local), remote.data);
}
"""
        result = extractor.extract(source, path="src/config.js")

        dependencies = dependencies_of(result, source, "loadConfig")

        assert dependencies.external_calls == ["path.posix.join", "readFile", "axios.get", "path.basename"]
        assert dependencies.internal_calls == ["join", "readFile", "get", "basename", "merge", "parse"]
        assert dependencies.imports == ["axios", "path"]

    def test_error_candidate_has_no_dependencies(self):
        candidate = ConstructCandidate.failed(raw_span=(0, 10), message="Error analyzing function: boom")

        assert compute_dependencies(candidate=candidate, text="function x() { y(); }", imports=[]) == ConstructDependencies()


class TestCandidateFailures:
    def test_syntax_tree_failure_is_isolated(self, extractor: StructuralExtractor, monkeypatch: pytest.MonkeyPatch):
        visit = SyntaxTreeWalker.visit

        def visit_failing_on_second(self: SyntaxTreeWalker, node: Node) -> list[ConstructCandidate]:
            if node.type == "function_declaration" and self.text(node.child_by_field_name("name")) == "second":
                msg = "unexpected node shape"
                raise ValueError(msg)
            return visit(self, node)

        monkeypatch.setattr(SyntaxTreeWalker, "visit", visit_failing_on_second)

        result = extractor.extract(THREE_FUNCTIONS_SOURCE, path="src/three.js")

        assert result.strategy == "syntax_tree"
        assert names(result) == [("function", "first"), ("error", "Error"), ("function", "third")]

        failed = result.candidates[1]
        assert failed.error == "Error analyzing function_declaration: unexpected node shape"
        assert THREE_FUNCTIONS_SOURCE[failed.raw_span[0] : failed.raw_span[1]].startswith("function second(b)")

    def test_pattern_failure_is_isolated(self, monkeypatch: pytest.MonkeyPatch):
        analyze_match = patterns.analyze_match

        def analyze_failing_on_second(text: str, pattern_match: PatternMatch) -> ConstructCandidate:
            if pattern_match.name == "second":
                msg = "unexpected match shape"
                raise ValueError(msg)
            return analyze_match(text, pattern_match)

        monkeypatch.setattr(patterns, "analyze_match", analyze_failing_on_second)

        candidates = extract_with_patterns(THREE_FUNCTIONS_SOURCE)

        assert [candidate.kind for candidate in candidates] == ["function", "error", "function"]
        assert [candidate.name for candidate in candidates] == ["first", "Error", "third"]
        assert candidates[1].error == "Error analyzing second: unexpected match shape"
        assert candidates[1].raw_span[0] == THREE_FUNCTIONS_SOURCE.index("function second")
