"""Placeholder substitution for Param values.

An Intent Spec must never carry the literal value of a Param. Every text field
of every step (and the spec's own name, description and URL) is rewritten so
that each literal, in any of the encodings it can take inside a snippet or a
URL, becomes its ``{{NAME}}`` placeholder.
"""

import re
from collections.abc import Iterable
from urllib.parse import quote, quote_plus

from .errors import RedactionViolationError
from .schema import IntentSpec, Param, Step


PLACEHOLDER_RE = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")
_PLACEHOLDER_SPLIT = re.compile(r"(\{\{[A-Za-z0-9_]+\}\})")


def placeholder(name: str) -> str:
    return "{{" + name + "}}"


def js_escape(value: str) -> str:
    """Escape a value for a single-quoted JavaScript string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def value_variants(value: str) -> list[str]:
    """The forms a literal can take in generated text: raw, JS-escaped, URL-encoded."""
    variants = []
    for form in (value, js_escape(value), quote_plus(value), quote(value, safe="")):
        if form and form not in variants:
            variants.append(form)
    return variants


class Redactor:
    """Replaces Param literals with placeholders.

    Longer literals are matched before shorter ones, so a value that contains
    another Param's value is substituted as a whole. Existing placeholders are
    never rewritten.
    """

    def __init__(self, values: dict[str, str]):
        """Initialize the redactor.

        Args:
            values: Param name -> literal value. Blank values are ignored.
        """
        self._names: dict[str, str] = {}
        for name, value in values.items():
            if not value or not value.strip():
                continue
            for variant in value_variants(value):
                self._names.setdefault(variant, name)

        variants = sorted(self._names, key=lambda v: (-len(v), v))
        self._pattern = re.compile("|".join(re.escape(v) for v in variants)) if variants else None

    def __bool__(self) -> bool:
        return self._pattern is not None

    def redact(self, text: str | None) -> str | None:
        if not text or self._pattern is None:
            return text
        parts = _PLACEHOLDER_SPLIT.split(text)
        # Odd indices are existing placeholders
        for i in range(0, len(parts), 2):
            if parts[i]:
                parts[i] = self._pattern.sub(lambda m: placeholder(self._names[m.group(0)]), parts[i])
        return "".join(parts)

    def leaks(self, text: str | None) -> list[str]:
        """Names of Params whose literal still occurs in ``text``."""
        if not text or self._pattern is None:
            return []
        found = []
        for part in _PLACEHOLDER_SPLIT.split(text)[::2]:
            for match in self._pattern.finditer(part):
                name = self._names[match.group(0)]
                if name not in found:
                    found.append(name)
        return found


def redact_step(step: Step, redactor: Redactor) -> Step:
    return Step(
        name=redactor.redact(step.name) or "",
        action=step.action,
        selector=redactor.redact(step.selector),
        instruction=redactor.redact(step.instruction) or "",
        snippet=redactor.redact(step.snippet) or "",
    )


def redact_spec(spec: IntentSpec, redactor: Redactor) -> IntentSpec:
    """Return a copy of ``spec`` with every literal replaced."""
    if not redactor:
        return spec
    return spec.replace(
        name=redactor.redact(spec.name) or "",
        description=redactor.redact(spec.description) or "",
        url=redactor.redact(spec.url) or "",
        steps=tuple(redact_step(s, redactor) for s in spec.steps),
    )


def rename_params(spec: IntentSpec, renames: dict[str, str]) -> IntentSpec:
    """Rename Params and their placeholders; a renamed Param merges into an existing one."""
    if not renames:
        return spec

    def sub(text: str | None) -> str | None:
        if not text:
            return text
        return PLACEHOLDER_RE.sub(lambda m: placeholder(renames.get(m.group(1), m.group(1))), text)

    params: dict[str, Param] = {}
    for param in spec.params:
        name = renames.get(param.name, param.name)
        params.setdefault(name, Param(name=name, description=param.description, default=param.default))

    return spec.replace(
        name=sub(spec.name) or "",
        description=sub(spec.description) or "",
        url=sub(spec.url) or "",
        steps=tuple(
            Step(
                name=sub(s.name) or "",
                action=s.action,
                selector=sub(s.selector),
                instruction=sub(s.instruction) or "",
                snippet=sub(s.snippet) or "",
            )
            for s in spec.steps
        ),
        params=tuple(params.values()),
    )


def known_values(fields: Iterable, params: Iterable[Param]) -> dict[str, str]:
    """Param name -> literal, classified fields first so their names win a shared literal."""
    values = {f.param_name: f.value for f in fields if f.value}
    for param in params:
        if param.default and param.name not in values:
            values[param.name] = param.default
    return values


def placeholders_in(steps: Iterable[Step]) -> list[str]:
    """Placeholder names in first-occurrence order across steps."""
    names: list[str] = []
    for step in steps:
        for text in step.text_fields():
            for name in PLACEHOLDER_RE.findall(text):
                if name not in names:
                    names.append(name)
    return names


def order_params(params: Iterable[Param], steps: Iterable[Step]) -> tuple[Param, ...]:
    """Deduplicate Params by name and order them by first use among the steps.

    Params no step refers to keep their relative order and go last.
    """
    by_name: dict[str, Param] = {}
    for param in params:
        by_name.setdefault(param.name, param)

    used = [n for n in placeholders_in(steps) if n in by_name]
    unused = [n for n in by_name if n not in used]
    return tuple(by_name[n] for n in used + unused)


def enforce(spec: IntentSpec, values: dict[str, str]) -> tuple[IntentSpec, int]:
    """Make ``spec`` satisfy the no-literal invariant.

    Args:
        spec: Spec from any generator.
        values: Param name -> literal value for every known variable.

    Returns:
        The corrected spec and the number of text fields that had to change.

    Raises:
        RedactionViolationError: If a step uses a placeholder that matches no
            declared or known Param, or a literal survives substitution.
    """
    redactor = Redactor(values)
    corrected = redact_spec(spec, redactor)

    before = [t for s in spec.steps for t in s.text_fields()] + [spec.name, spec.description, spec.url]
    after = [t for s in corrected.steps for t in s.text_fields()] + [
        corrected.name, corrected.description, corrected.url,
    ]
    corrections = sum(1 for a, b in zip(before, after) if a != b)

    known = set(spec.param_names) | set(values)
    untraceable = [n for n in placeholders_in(corrected.steps) if n not in known]
    if untraceable:
        raise RedactionViolationError(
            f"Steps reference undeclared placeholder(s): {', '.join(untraceable)}",
            placeholders=untraceable,
        )

    leaked = [name for text in after for name in redactor.leaks(text)]
    if leaked:
        raise RedactionViolationError(
            f"Literal value(s) of {', '.join(dict.fromkeys(leaked))} could not be replaced",
            placeholders=list(dict.fromkeys(leaked)),
        )

    return corrected, corrections
