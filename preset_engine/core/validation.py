"""
Configuration Validation for Preset Prompt Templates

This module cross-checks a preset configuration against its own catalog so
the editor can show every problem inline while the author is still typing.
Validation never raises: it always returns a (possibly empty) list of
issues, because drafts legitimately pass through invalid states.

Key Features:
- Shared-namespace duplicate detection across variables and media
- Identifier format checks for entries written out-of-band
- Dangling reference detection in the template, mapping texts and defaults
- Resolution-time detection of required inputs that nobody supplied
- Advisory cycle detection through value-mapping expansions using DFS
"""

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .identifiers import is_valid_identifier
from .preset import ImageInput, ImageVariable, PresetConfig, TextVariable
from .template import MEDIA, VAR, TemplateError, extract_references

logger = logging.getLogger(__name__)

TEMPLATE_LOCATION = "template"


class IssueKind(str, enum.Enum):
    DUPLICATE_IDENTIFIER = "duplicate_identifier"
    MALFORMED_IDENTIFIER = "malformed_identifier"
    DANGLING_REFERENCE = "dangling_reference"
    UNMAPPED_REQUIRED_VARIABLE = "unmapped_required_variable"
    CYCLIC_REFERENCE = "cyclic_reference"


# Issues that block publishing. The others are only reported.
STRUCTURAL_KINDS = frozenset({
    IssueKind.DUPLICATE_IDENTIFIER,
    IssueKind.MALFORMED_IDENTIFIER,
    IssueKind.DANGLING_REFERENCE,
})


@dataclass(frozen=True)
class ValidationIssue:
    """
    One problem found in a configuration.

    ``name`` is the offending identifier, ``ref_kind`` is set for dangling
    references, and ``location`` says where the reference was found.
    """
    kind: IssueKind
    name: str
    ref_kind: Optional[str] = None
    location: Optional[str] = None
    message: str = ""

    @property
    def is_structural(self) -> bool:
        return self.kind in STRUCTURAL_KINDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "ref_kind": self.ref_kind,
            "location": self.location,
            "message": self.message,
        }


def duplicate_identifier(name: str) -> ValidationIssue:
    return ValidationIssue(
        IssueKind.DUPLICATE_IDENTIFIER, name,
        message=f"The name '{name}' is declared more than once across variables and media",
    )


def malformed_identifier(name: str) -> ValidationIssue:
    return ValidationIssue(
        IssueKind.MALFORMED_IDENTIFIER, name,
        message=f"'{name}' is not a valid name",
    )


def dangling_reference(ref_kind: str, name: str, location: Optional[str] = None) -> ValidationIssue:
    noun = "variable" if ref_kind == VAR else "media entry"
    return ValidationIssue(
        IssueKind.DANGLING_REFERENCE, name, ref_kind=ref_kind, location=location,
        message=f"Undefined {noun}: @{{{ref_kind}:{name}}}",
    )


def unmapped_required_variable(name: str) -> ValidationIssue:
    return ValidationIssue(
        IssueKind.UNMAPPED_REQUIRED_VARIABLE, name,
        message=f"Value required for: {name}",
    )


def cyclic_reference(name: str, path: List[str]) -> ValidationIssue:
    return ValidationIssue(
        IssueKind.CYCLIC_REFERENCE, name, ref_kind=VAR,
        message=f"Circular reference detected: {' -> '.join(path)}",
    )


def template_sources(config: PresetConfig) -> List[Tuple[str, str]]:
    """
    Every template text in a configuration, paired with its location.

    The prompt template comes first, followed by each text variable's
    default value and value-mapping texts in declaration order.
    """
    sources = [(TEMPLATE_LOCATION, config.template)]
    for variable in config.variables:
        if not isinstance(variable, TextVariable):
            continue
        if variable.default_value:
            sources.append((f"variables.{variable.name}.default_value", variable.default_value))
        for mapping in variable.value_map:
            sources.append((f"variables.{variable.name}.value_map[{mapping.value}]", mapping.text))
    return sources


def validate_config(config: PresetConfig) -> List[ValidationIssue]:
    """
    Validate a configuration against its own catalog.

    Args:
        config: Draft or published configuration

    Returns:
        Issues in a stable order: duplicates, malformed names, dangling
        references (template first), then advisory cycles

    Example:
        >>> config = PresetConfig(template="@{var:ghost}")
        >>> [issue.kind.value for issue in validate_config(config)]
        ['dangling_reference']
    """
    issues: List[ValidationIssue] = []
    names = config.names()

    counts = Counter(names)
    reported: Set[str] = set()
    for name in names:
        if counts[name] > 1 and name not in reported:
            issues.append(duplicate_identifier(name))
            reported.add(name)

    reported = set()
    for name in names:
        if not is_valid_identifier(name) and name not in reported:
            issues.append(malformed_identifier(name))
            reported.add(name)

    declared = {VAR: set(config.variable_names()), MEDIA: set(config.media_names())}
    for location, text in template_sources(config):
        issues.extend(_dangling_references(text, declared, location))

    issues.extend(detect_cyclic_references(config))

    if issues:
        logger.debug(f"Validation found {len(issues)} issue(s)")
    return issues


def _dangling_references(text: str, declared: Dict[str, Set[str]], location: str) -> List[ValidationIssue]:
    issues = []
    seen: Set[Tuple[str, str]] = set()
    try:
        references = extract_references(text)
    except TemplateError as e:
        logger.warning(f"Skipping unreadable template text at {location}: {e}")
        return issues

    for reference in references:
        key = (reference.kind, reference.name)
        if reference.name not in declared[reference.kind] and key not in seen:
            issues.append(dangling_reference(reference.kind, reference.name, location))
            seen.add(key)
    return issues


def is_publishable(issues: Iterable[ValidationIssue]) -> bool:
    """True when none of the issues is structural"""
    return not any(issue.is_structural for issue in issues)


def structural_issues(issues: Iterable[ValidationIssue]) -> List[ValidationIssue]:
    return [issue for issue in issues if issue.is_structural]


def validate_inputs(config: PresetConfig, inputs: Optional[Dict[str, Any]] = None) -> List[ValidationIssue]:
    """
    Report required variables that a resolution with ``inputs`` could not fill.

    A text variable is satisfied by a non-empty string input or a default
    value; an image variable only by an ImageInput.

    Args:
        config: Configuration about to be resolved
        inputs: Runtime values keyed by variable name

    Returns:
        One UnmappedRequiredVariable issue per unsatisfied variable
    """
    inputs = inputs or {}
    issues = []
    for variable in config.variables:
        if not variable.required:
            continue
        value = inputs.get(variable.name)
        if isinstance(variable, ImageVariable):
            if not isinstance(value, ImageInput):
                issues.append(unmapped_required_variable(variable.name))
        elif not (isinstance(value, str) and value) and not variable.default_value:
            issues.append(unmapped_required_variable(variable.name))
    return issues


# Helper classes and functions

@dataclass
class CycleDetectionResult:
    """Result of cycle detection algorithm"""
    has_cycle: bool = False
    cycle_path: List[str] = field(default_factory=list)
    visited: Set[str] = field(default_factory=set)


def _build_dependency_graph(config: PresetConfig) -> Dict[str, List[str]]:
    """
    Map each text variable to the variables its expansions reference.

    Both default values and value-mapping texts count as expansions.
    """
    graph: Dict[str, List[str]] = {}
    for variable in config.variables:
        dependencies = graph.setdefault(variable.name, [])
        if not isinstance(variable, TextVariable):
            continue
        texts = [mapping.text for mapping in variable.value_map]
        if variable.default_value:
            texts.append(variable.default_value)
        for text in texts:
            for reference in extract_references(text):
                if reference.kind == VAR and reference.name not in dependencies:
                    dependencies.append(reference.name)
    return graph


def _detect_cycle_dfs(graph: Dict[str, List[str]], start_node: str) -> CycleDetectionResult:
    """
    Use DFS to detect cycles in dependency graph starting from a specific node.

    The search keeps its own stack of neighbor iterators, so long expansion
    chains do not run into the interpreter's recursion limit.

    Args:
        graph: Dependency graph (variable name -> referenced variable names)
        start_node: Starting node for cycle detection

    Returns:
        CycleDetectionResult with cycle information
    """
    result = CycleDetectionResult()

    visited = {start_node}
    on_path = {start_node}
    path = [start_node]
    stack: List[Iterator[str]] = [iter(graph.get(start_node, []))]

    while stack:
        neighbor = next(stack[-1], None)
        if neighbor is None:
            stack.pop()
            on_path.remove(path.pop())
            continue

        if neighbor in on_path:
            cycle_start_index = path.index(neighbor)
            result.cycle_path = path[cycle_start_index:] + [neighbor]
            result.has_cycle = True
            break

        if neighbor in visited:
            continue

        visited.add(neighbor)
        on_path.add(neighbor)
        path.append(neighbor)
        stack.append(iter(graph.get(neighbor, [])))

    result.visited = visited
    return result


def detect_cyclic_references(config: PresetConfig) -> List[ValidationIssue]:
    """
    Find variables whose expansions can lead back to themselves.

    Each distinct cycle is reported once, named after the variable where
    the search entered it. These issues are advisory: a cycle only fires
    when a guest picks the mapping that closes it, and the resolver guards
    against that at run time.
    """
    issues = []
    try:
        graph = _build_dependency_graph(config)
    except TemplateError as e:
        logger.warning(f"Failed to build dependency graph: {e}")
        return issues

    seen_cycles: Set[frozenset] = set()
    visited_global: Set[str] = set()
    for node in graph:
        if node in visited_global:
            continue
        cycle_result = _detect_cycle_dfs(graph, node)
        visited_global.update(cycle_result.visited)
        if cycle_result.has_cycle:
            members = frozenset(cycle_result.cycle_path)
            if members not in seen_cycles:
                seen_cycles.add(members)
                issues.append(cyclic_reference(cycle_result.cycle_path[0], cycle_result.cycle_path))
    return issues
