"""Prompts used by the compiler to request an Intent Spec from an analysis service."""

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from compiler.patterns import Classification
    from compiler.reducer import ReducedRecording


PROMPT_CEILING = 50_000  # bytes

INTENT_SPEC_SYSTEM_PROMPT = """You are an expert at turning recorded browser sessions into reusable, parameterized automation specs.
You answer with a single JSON object and nothing else."""

INTENT_SPEC_PROMPT = """Analyze the recorded browser session below and produce an Intent Spec: a named workflow with ordered, replayable steps and the variables that change between runs.

## Recording (reduced)

```json
{recording_json}
```

## Detected Variables

{variables_section}

## Output Format

Return ONLY valid JSON in this exact shape:

```json
{{
  "name": "Short descriptive name",
  "description": "What this automation accomplishes",
  "url": "Starting URL",
  "params": [
    {{"name": "PARAM_NAME", "description": "What the value is"}}
  ],
  "steps": [
    {{
      "name": "Human-readable step name",
      "action": "navigate|click|input|select|submit",
      "selector": "CSS selector from the recording, or null",
      "instruction": "Natural-language instruction for a human or model-driven replayer",
      "snippet": "await page.fill('#username', '{{{{USERNAME}}}}');"
    }}
  ]
}}
```

## Rules

1. Steps follow the order of the recorded actions. Merge repeated input events on the same field into one step.
2. Snippets are literal Playwright statements (`page.goto`, `page.click`, `page.fill`, `page.selectOption`).
3. Every value a user typed that could change between runs is a param. Use UPPER_SNAKE_CASE names.
4. NEVER write a param's literal value anywhere in a step. Write `{{{{PARAM_NAME}}}}` instead. This applies to passwords, emails, usernames and business values alike.
5. Use the detected variable names above where they apply.
6. Prefer id-based selectors, then name attributes, then the recorded CSS selector.
"""


def _variables_section(classification: "Classification | None") -> str:
    if classification is None or not classification.fields:
        return "None detected. Infer params from the recorded inputs."
    lines = [
        f"- `{f.param_name}` ({f.field_class.value}): {f.description}, field `{f.field_key}`"
        for f in classification.fields
    ]
    if classification.workflow is not None:
        lines.append(f"\nThe session looks like a {classification.workflow.template.title.lower()} workflow.")
    return "\n".join(lines)


def build_prompt(
    reduced: "ReducedRecording",
    classification: "Classification | None" = None,
    ceiling: int = PROMPT_CEILING,
) -> str:
    """Build the Intent Spec request from a reduced recording.

    Args:
        reduced: Output of the reducer. Raw recordings are never accepted.
        classification: Optional field classification, used for name hints.
        ceiling: Maximum prompt size in bytes.

    Returns:
        The prompt text.

    Raises:
        ReductionOverflowError: If the reduction overflowed its budget or the
            finished prompt is over ``ceiling``.
    """
    # Import here to avoid circular imports
    from compiler.errors import ReductionOverflowError

    if reduced.overflow:
        raise ReductionOverflowError(
            f"Reduced recording is over budget ({reduced.reduced_bytes:,} bytes)",
            size=reduced.reduced_bytes,
            budget=ceiling,
        )

    prompt = INTENT_SPEC_PROMPT.format(
        recording_json=json.dumps(reduced.to_dict(), ensure_ascii=False),
        variables_section=_variables_section(classification),
    )

    size = len(prompt.encode("utf-8"))
    if size > ceiling:
        raise ReductionOverflowError(
            f"Prompt is {size:,} bytes, over the {ceiling:,} byte ceiling",
            size=size,
            budget=ceiling,
        )
    return prompt
