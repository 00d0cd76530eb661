"""
Suite definition helpers.

Test cases are declared with decorators on a Suite and grouped with
nested describe() blocks:

    api = Suite("JSONPlaceholder API", mode=TestMode.RUN)
    posts = api.describe("Posts")

    @posts.test("should retrieve a single post")
    async def get_post(ctx):
        response = await ctx.http.get("/posts/1")
        assert response.body["id"] == 1
"""

import functools
import importlib
import importlib.util
import inspect
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..core.exceptions import ConfigFault
from ..core.logging_config import get_logger
from ..core.types import TestMode
from .models import TestBody, TestCase


ID_SEPARATOR = " > "
DEFAULT_ATTRIBUTE = "suite"


class _Declaration:
    def __init__(self, title: str, body: TestBody, timeout_ms: Optional[int], skip: bool, mode: Optional[TestMode]):
        self.title = title
        self.body = body
        self.timeout_ms = timeout_ms
        self.skip = skip
        self.mode = mode


class Suite:
    """A named group of test cases sharing a mode, a timeout and before-each hooks."""

    def __init__(
        self,
        name: str,
        mode: TestMode = TestMode.RUN,
        timeout_ms: Optional[int] = None,
        parent: Optional["Suite"] = None,
    ):
        if not name or not name.strip():
            raise ConfigFault("Suite name cannot be empty", source="suite")
        self.name = name.strip()
        self.mode = TestMode(mode)
        self.timeout_ms = timeout_ms
        self.parent = parent
        self._hooks: List[TestBody] = []
        self._entries: List[Union[_Declaration, "Suite"]] = []

    @property
    def full_name(self) -> str:
        if self.parent is None:
            return self.name
        return f"{self.parent.full_name}{ID_SEPARATOR}{self.name}"

    def _check_coroutine(self, fn: Callable, what: str) -> None:
        if not inspect.iscoroutinefunction(fn):
            raise ConfigFault(
                f"{what} {getattr(fn, '__name__', fn)!r} in suite {self.full_name!r} must be an async function",
                source="suite",
            )

    def test(
        self,
        title: str,
        timeout_ms: Optional[int] = None,
        skip: bool = False,
        mode: Optional[TestMode] = None,
    ) -> Callable[[TestBody], TestBody]:
        """Register the decorated coroutine function as a test case."""

        def decorator(fn: TestBody) -> TestBody:
            self._check_coroutine(fn, "Test")
            self._entries.append(_Declaration(title, fn, timeout_ms, skip, mode))
            return fn

        return decorator

    def before_each(self, fn: TestBody) -> TestBody:
        """Register a hook awaited before every test of this suite and its children."""
        self._check_coroutine(fn, "Hook")
        self._hooks.append(fn)
        return fn

    def describe(self, name: str, mode: Optional[TestMode] = None, timeout_ms: Optional[int] = None) -> "Suite":
        """Create a nested suite inheriting this suite's mode, timeout and hooks."""
        child = Suite(
            name,
            mode=mode or self.mode,
            timeout_ms=timeout_ms if timeout_ms is not None else self.timeout_ms,
            parent=self,
        )
        self._entries.append(child)
        return child

    def hooks(self) -> List[TestBody]:
        """Before-each hooks, outermost suite first."""
        inherited = self.parent.hooks() if self.parent is not None else []
        return inherited + self._hooks

    def cases(self) -> List[TestCase]:
        """Flatten the suite into test cases in declaration order."""
        cases: List[TestCase] = []
        hooks = self.hooks()
        for entry in self._entries:
            if isinstance(entry, Suite):
                cases.extend(entry.cases())
                continue
            cases.append(
                TestCase(
                    id=f"{self.full_name}{ID_SEPARATOR}{entry.title}",
                    mode=entry.mode or self.mode,
                    body=_with_hooks(hooks, entry.body),
                    timeout_ms=entry.timeout_ms if entry.timeout_ms is not None else self.timeout_ms,
                    skip=entry.skip,
                    suite=self.full_name,
                )
            )
        return cases

    def __repr__(self) -> str:
        return f"Suite({self.full_name!r}, mode={self.mode.value})"


def _with_hooks(hooks: List[TestBody], body: TestBody) -> TestBody:
    if not hooks:
        return body

    @functools.wraps(body)
    async def run(ctx):
        for hook in hooks:
            await hook(ctx)
        return await body(ctx)

    return run


def _import_target(module_ref: str):
    if module_ref.endswith(".py"):
        path = Path(module_ref)
        if not path.exists():
            raise ConfigFault(f"Suite file not found: {path}", source=module_ref)
        spec = importlib.util.spec_from_file_location(path.stem, path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(module_ref)


def _as_cases(obj, target: str) -> List[TestCase]:
    if isinstance(obj, Suite):
        return obj.cases()
    if isinstance(obj, TestCase):
        return [obj]
    if isinstance(obj, (list, tuple)):
        cases: List[TestCase] = []
        for item in obj:
            cases.extend(_as_cases(item, target))
        return cases
    raise ConfigFault(
        f"{target} resolved to {type(obj).__name__}, expected a Suite or TestCases",
        source=target,
    )


def load_suite(target: str) -> List[TestCase]:
    """
    Resolve a "module:attribute" reference into test cases.

    The module part may be a dotted module path or a path to a .py file.
    The attribute defaults to ``suite`` and may name a Suite, a TestCase,
    a list of either, or a zero-argument callable returning one of those.

    Raises:
        ConfigFault: If the reference cannot be imported or resolved
    """
    logger = get_logger(__name__)
    module_ref, _, attribute = target.partition(":")
    attribute = attribute or DEFAULT_ATTRIBUTE

    try:
        module = _import_target(module_ref)
    except ConfigFault:
        raise
    except Exception as e:
        raise ConfigFault(f"Cannot import suite {target}: {e}", source=target) from e

    obj = module
    for part in attribute.split("."):
        if not hasattr(obj, part):
            raise ConfigFault(f"{module_ref} has no attribute {attribute!r}", source=target)
        obj = getattr(obj, part)

    if callable(obj) and not isinstance(obj, (Suite, TestCase)):
        try:
            obj = obj()
        except Exception as e:
            raise ConfigFault(f"Suite factory {target} failed: {e}", source=target) from e

    cases = _as_cases(obj, target)
    logger.debug(f"Loaded {len(cases)} tests from {target}")
    return cases


def load_suites(targets: List[str]) -> List[TestCase]:
    """Load and concatenate several suite references."""
    cases: List[TestCase] = []
    for target in targets:
        cases.extend(load_suite(target))
    return cases
