"""Deterministic Intent Spec generation from a reduced recording."""

from typing import TYPE_CHECKING

from recorder import ActionKind, VALUE_KINDS
from .patterns import Classification, FieldClassification, classify, site_name
from .redaction import Redactor, js_escape, order_params, placeholder, redact_spec
from .reducer import ReducedAction, ReducedRecording
from .schema import IntentSpec, Param, Provenance, Step

if TYPE_CHECKING:
    from utils.logger import CompileLogger


LABEL_CHARS = 40


def best_selector(action: ReducedAction) -> str | None:
    """The most specific locator the reduction kept for an action's target."""
    if action.selector:
        return action.selector
    if action.id:
        return f"#{action.id}"
    if action.name:
        return f'[name="{action.name}"]'
    if action.placeholder:
        return f'[placeholder="{action.placeholder}"]'
    return None


def _label(action: ReducedAction) -> str:
    label = action.text or action.id or action.name or action.placeholder or action.selector or ""
    label = " ".join(label.split())
    return label[:LABEL_CHARS] if label else (action.tag_name or "element").lower()


def _params_for(classification: Classification) -> list[Param]:
    return [
        Param(
            name=f.param_name,
            description=f.description,
            default=None if f.field_class.is_credential else f.value,
        )
        for f in classification.fields
    ]


class RuleBasedGenerator:
    """Turns a reduction and its classification into an Intent Spec.

    Total: any reduction yields a spec. A recording without actions yields a
    spec with no steps.
    """

    name = "rule_based"

    def __init__(self, logger: "CompileLogger | None" = None):
        self.logger = logger

    async def agenerate(self, reduced: ReducedRecording, classification: Classification) -> IntentSpec:
        return self.generate(reduced, classification)

    def generate(self, reduced: ReducedRecording, classification: Classification) -> IntentSpec:
        host = site_name(reduced.url)
        steps = self._build_steps(reduced, classification)

        workflow = classification.workflow
        if workflow is not None:
            name = f"{workflow.template.title} on {host}"
            description = workflow.template.description.format(host=host)
        else:
            name = f"Workflow on {host}"
            description = f"Replay the recorded interaction with {host}"
        if classification.fields:
            description += f" using {', '.join(f.param_name for f in classification.fields)}"
        description += f" ({len(steps)} step{'s' if len(steps) != 1 else ''})."

        spec = IntentSpec(
            name=name,
            description=description,
            url=reduced.url,
            steps=tuple(steps),
            params=tuple(_params_for(classification)),
            provenance=Provenance.RULE_BASED,
        )

        # Literals can appear outside the field they were typed into
        redactor = Redactor({f.param_name: f.value for f in classification.fields})
        spec = redact_spec(spec, redactor)
        spec = spec.replace(params=order_params(spec.params, spec.steps))

        if self.logger:
            self.logger.info(f"Rule-based spec: {len(spec.steps)} step(s), {len(spec.params)} param(s)")
        return spec

    # =========================================================================
    # Steps
    # =========================================================================

    def _build_steps(self, reduced: ReducedRecording, classification: Classification) -> list[Step]:
        steps: list[Step] = []
        last_field: str | None = None  # field key of the previous step, if it was an input

        for action in reduced.actions:
            if action.kind in VALUE_KINDS and action.kind != ActionKind.SELECT:
                f = classification.field_for(action)
                key = action.field_key
                step = self._input_step(action, f)
                if key and key == last_field:
                    # Keep one step per field, carrying its final value
                    steps[-1] = step
                else:
                    steps.append(step)
                last_field = key or None
                continue

            last_field = None
            if action.kind == ActionKind.NAVIGATE:
                steps.append(self._navigate_step(action, reduced.url))
            elif action.kind == ActionKind.CLICK:
                steps.append(self._click_step(action))
            elif action.kind == ActionKind.SELECT:
                steps.append(self._select_step(action, classification.field_for(action)))
            elif action.kind == ActionKind.SUBMIT:
                steps.append(self._submit_step(action))

        return steps

    def _navigate_step(self, action: ReducedAction, default_url: str) -> Step:
        url = action.url or default_url
        return Step(
            name=f"Open {site_name(url)}",
            action=ActionKind.NAVIGATE.value,
            selector=None,
            instruction=f"Navigate to {url}",
            snippet=f"await page.goto('{js_escape(url)}');",
        )

    def _click_step(self, action: ReducedAction) -> Step:
        selector = best_selector(action)
        label = _label(action)
        instruction = f"Click the '{label}' {(action.tag_name or 'element').lower()}"
        if selector:
            snippet = f"await page.click('{js_escape(selector)}');"
        elif action.text:
            snippet = f"await page.click('text={js_escape(action.text)}');"
        else:
            snippet = f"// {instruction}"
        return Step(
            name=f"Click '{label}'",
            action=ActionKind.CLICK.value,
            selector=selector,
            instruction=instruction,
            snippet=snippet,
        )

    def _value_text(self, action: ReducedAction, f: FieldClassification | None) -> tuple[str, str]:
        """(snippet literal, human-readable value) for a value-bearing action."""
        if f is not None:
            token = placeholder(f.param_name)
            return token, token
        value = action.value or ""
        return js_escape(value), f"'{value}'"

    def _input_step(self, action: ReducedAction, f: FieldClassification | None) -> Step:
        selector = best_selector(action)
        label = _label(action)
        literal, shown = self._value_text(action, f)
        what = f.description.lower() if f is not None else f"'{label}'"
        return Step(
            name=f"Enter {what}",
            action=ActionKind.INPUT.value,
            selector=selector,
            instruction=f"Type {shown} into the {label} field",
            snippet=f"await page.fill('{js_escape(selector or label)}', '{literal}');",
        )

    def _select_step(self, action: ReducedAction, f: FieldClassification | None) -> Step:
        selector = best_selector(action)
        label = _label(action)
        literal, shown = self._value_text(action, f)
        return Step(
            name=f"Select {shown} in {label}",
            action=ActionKind.SELECT.value,
            selector=selector,
            instruction=f"Choose {shown} from the {label} dropdown",
            snippet=f"await page.selectOption('{js_escape(selector or label)}', '{literal}');",
        )

    def _submit_step(self, action: ReducedAction) -> Step:
        selector = best_selector(action) or "form"
        return Step(
            name="Submit form",
            action=ActionKind.SUBMIT.value,
            selector=selector,
            instruction="Submit the form",
            snippet=f"await page.$eval('{js_escape(selector)}', form => form.submit());",
        )


def generate(
    reduced: ReducedRecording,
    classification: Classification | None = None,
    logger: "CompileLogger | None" = None,
) -> IntentSpec:
    """Build a rule-based Intent Spec, classifying the reduction if needed."""
    if classification is None:
        classification = classify(reduced, logger=logger)
    return RuleBasedGenerator(logger=logger).generate(reduced, classification)
