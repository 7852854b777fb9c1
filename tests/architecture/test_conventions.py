"""
Convention Enforcement Tests.

Permanent tests that catch anti-patterns which import-based layer rules
cannot detect: frozen dataclass conventions, immutable collections,
silent exception swallowing, and repository port contracts.
"""

import ast
import inspect
from pathlib import Path

import pytest

SRC_ROOT = Path(__file__).parent.parent.parent / "src" / "taskgate"

DOMAIN_MODULES = ["models.py", "transitions.py"]


def _frozen_flags(tree: ast.AST) -> list[tuple[ast.ClassDef, bool]]:
    """(class node, is_frozen) for each @dataclass class in a module."""
    results = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.ClassDef):
            continue
        for decorator in node.decorator_list:
            if isinstance(decorator, ast.Name) and decorator.id == "dataclass":
                results.append((node, False))
            elif (
                isinstance(decorator, ast.Call)
                and isinstance(decorator.func, ast.Name)
                and decorator.func.id == "dataclass"
            ):
                frozen = any(
                    kw.arg == "frozen"
                    and isinstance(kw.value, ast.Constant)
                    and kw.value.value is True
                    for kw in decorator.keywords
                )
                results.append((node, frozen))
    return results


class TestFrozenDataclassConvention:
    """All domain dataclasses must be frozen."""

    @pytest.mark.parametrize("module", DOMAIN_MODULES)
    def test_domain_dataclasses_are_frozen(self, module):
        """Domain records are values; changes go through the mutation guard."""
        tree = ast.parse((SRC_ROOT / "domain" / module).read_text())
        violations = [node.name for node, frozen in _frozen_flags(tree) if not frozen]
        assert not violations, f"Domain dataclasses must be frozen. Violations: {violations}"

    def test_engine_config_is_frozen(self):
        tree = ast.parse((SRC_ROOT / "application" / "config.py").read_text())
        assert all(frozen for _, frozen in _frozen_flags(tree))


class TestImmutableCollections:
    """Frozen domain model fields should use tuple, not list."""

    def test_domain_models_use_tuples_not_lists(self):
        """Frozen domain model fields should use tuple, not list."""
        source = (SRC_ROOT / "domain" / "models.py").read_text()
        tree = ast.parse(source)
        violations = []

        for node, frozen in _frozen_flags(tree):
            if not frozen:
                continue
            for item in node.body:
                if isinstance(item, ast.AnnAssign):
                    target_name = getattr(item.target, "id", "?")
                    annotation = ast.get_source_segment(source, item.annotation) or ""
                    if "list[" in annotation.lower() or "dict[" in annotation.lower():
                        violations.append(f"{node.name}.{target_name}: {annotation}")

        assert not violations, (
            "Frozen dataclass fields should use tuple, not list:\n"
            + "\n".join(f"  - {v}" for v in violations)
        )


class TestNoSilentExceptionSwallowing:
    """No 'except: pass' or bare 'except:' in src/."""

    def test_no_except_pass(self):
        """No silent exception swallowing in src/taskgate/."""
        violations = []

        for py_file in SRC_ROOT.rglob("*.py"):
            source = py_file.read_text()
            tree = ast.parse(source)

            for node in ast.walk(tree):
                if not isinstance(node, ast.ExceptHandler):
                    continue
                rel_path = py_file.relative_to(SRC_ROOT.parent.parent)
                if node.type is None:
                    violations.append(f"{rel_path}:{node.lineno}: bare except")
                    continue
                if len(node.body) == 1:
                    stmt = node.body[0]
                    is_pass = isinstance(stmt, ast.Pass)
                    is_ellipsis = (
                        isinstance(stmt, ast.Expr)
                        and isinstance(stmt.value, ast.Constant)
                        and stmt.value.value is ...
                    )
                    if is_pass or is_ellipsis:
                        handler_type = ast.get_source_segment(source, node.type) or ""
                        violations.append(
                            f"{rel_path}:{node.lineno}: except {handler_type}: pass"
                        )

        assert not violations, "Silent exception swallowing found:\n" + "\n".join(
            f"  - {v}" for v in violations
        )


class TestInterfaceConventions:
    """Port naming and contract conventions."""

    def test_all_ports_end_with_interface(self):
        """All ABCs in domain/interfaces.py must end with 'Interface'."""
        from taskgate.domain import interfaces

        abstract_classes = [
            name
            for name, obj in inspect.getmembers(interfaces, inspect.isclass)
            if inspect.isabstract(obj) and not name.startswith("_")
        ]
        violations = [name for name in abstract_classes if not name.endswith("Interface")]

        assert abstract_classes
        assert not violations, f"Abstract classes should end with 'Interface': {violations}"

    def test_all_interface_methods_are_abstract(self):
        """Every public method on a port must be abstract."""
        from taskgate.domain import interfaces

        violations = []
        for name, cls in inspect.getmembers(interfaces, inspect.isclass):
            if not inspect.isabstract(cls) or not name.endswith("Interface"):
                continue
            for method_name, method in inspect.getmembers(cls, predicate=inspect.isfunction):
                if method_name.startswith("_"):
                    continue
                if not getattr(method, "__isabstractmethod__", False):
                    violations.append(f"{name}.{method_name}")

        assert not violations, f"Public interface methods must be abstract: {violations}"

    @pytest.mark.parametrize(
        ("port", "implementations"),
        [
            (
                "WorkItemRepositoryInterface",
                ["InMemoryWorkItemRepository", "FilesystemWorkItemRepository"],
            ),
            (
                "DependencyRepositoryInterface",
                ["InMemoryDependencyRepository", "FilesystemDependencyRepository"],
            ),
            (
                "RoleTransitionRepositoryInterface",
                ["InMemoryRoleTransitionRepository", "FilesystemRoleTransitionRepository"],
            ),
        ],
    )
    def test_implementations_satisfy_interfaces(self, port, implementations):
        """Every adapter subclasses its port and leaves nothing abstract."""
        from taskgate.domain import interfaces
        from taskgate.infrastructure import persistence

        port_cls = getattr(interfaces, port)
        for impl_name in implementations:
            impl_cls = getattr(persistence, impl_name)
            assert issubclass(impl_cls, port_cls)
            assert not inspect.isabstract(impl_cls), (
                f"{impl_name} is missing methods: {impl_cls.__abstractmethods__}"
            )
