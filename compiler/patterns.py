"""Variable and workflow pattern matching.

Classifies the fields a user typed into (credential, business value, generic)
and recognizes the overall workflow shape (login, item creation, ...). Both
policies are driven by the ordered tables below; extending the catalog means
adding a row, not a branch.
"""

import re
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from recorder import ActionKind, VALUE_KINDS
from .reducer import ReducedAction, ReducedRecording

if TYPE_CHECKING:
    from utils.logger import CompileLogger


# =============================================================================
# Field classification
# =============================================================================

class FieldClass(StrEnum):
    """What kind of variable a field holds."""

    IDENTIFIER = "identifier"  # login name or email
    SECRET = "secret"  # password, card number
    BUSINESS = "business"  # a recognized domain value (price, item name, ...)
    GENERIC = "generic"  # unrecognized but carries a value

    @property
    def is_credential(self) -> bool:
        return self in (FieldClass.IDENTIFIER, FieldClass.SECRET)


@dataclass(frozen=True)
class FieldRule:
    """One row of the field classification table."""

    field_class: FieldClass
    param_name: str
    description: str
    substrings: tuple[str, ...] = ()
    exact: tuple[str, ...] = ()  # whole-key matches, for keys too short for substrings

    def matches(self, key: str) -> bool:
        return key in self.exact or any(s in key for s in self.substrings)


# Element ``type`` attributes that decide the class on their own. Checked
# after capture-layer login tags and before the key substrings below, so a
# type="password" field keyed "search_box" is still a secret.
TYPE_RULES: dict[str, FieldRule] = {
    "password": FieldRule(FieldClass.SECRET, "PASSWORD", "Account password"),
    "email": FieldRule(FieldClass.IDENTIFIER, "EMAIL", "Login email address"),
    "search": FieldRule(FieldClass.BUSINESS, "SEARCH_QUERY", "Search query"),
    "tel": FieldRule(FieldClass.BUSINESS, "PHONE", "Phone number"),
}

# Ordered: the first rule whose substring occurs in a field key wins
FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(FieldClass.SECRET, "PASSWORD", "Account password",
              substrings=("password", "passwd", "pwd")),
    FieldRule(FieldClass.IDENTIFIER, "EMAIL", "Login email address",
              substrings=("email", "e_mail")),
    FieldRule(FieldClass.IDENTIFIER, "USERNAME", "Login username",
              substrings=("username", "user_name", "login", "user")),
    FieldRule(FieldClass.SECRET, "CARD_NUMBER", "Payment card number",
              substrings=("card_number", "cardnumber", "cc_number", "ccnum", "card_no")),
    FieldRule(FieldClass.BUSINESS, "SELLING_PRICE", "Selling price",
              substrings=("selling_price", "sellingprice", "sale_price", "sales_rate")),
    FieldRule(FieldClass.BUSINESS, "COST_PRICE", "Cost price",
              substrings=("cost_price", "costprice", "purchase_price", "cost")),
    FieldRule(FieldClass.BUSINESS, "PRICE", "Price",
              substrings=("price", "amount")),
    FieldRule(FieldClass.BUSINESS, "ITEM_NAME", "Item or product name",
              substrings=("item_name", "itemname", "product_name", "productname", "product_title")),
    FieldRule(FieldClass.BUSINESS, "QUANTITY", "Quantity",
              substrings=("quantity", "qty")),
    FieldRule(FieldClass.BUSINESS, "SEARCH_QUERY", "Search query",
              substrings=("search", "query", "keyword"), exact=("q", "s")),
    FieldRule(FieldClass.BUSINESS, "PHONE", "Phone number",
              substrings=("phone", "mobile", "telephone")),
    FieldRule(FieldClass.BUSINESS, "FIRST_NAME", "First name",
              substrings=("first_name", "firstname", "given_name", "fname")),
    FieldRule(FieldClass.BUSINESS, "LAST_NAME", "Last name",
              substrings=("last_name", "lastname", "surname", "family_name", "lname")),
    FieldRule(FieldClass.BUSINESS, "COMPANY", "Company name",
              substrings=("company", "organization", "organisation")),
    FieldRule(FieldClass.BUSINESS, "ADDRESS", "Postal address",
              substrings=("address", "street")),
    FieldRule(FieldClass.BUSINESS, "DESCRIPTION", "Description",
              substrings=("description", "notes", "comment")),
    FieldRule(FieldClass.BUSINESS, "FULL_NAME", "Name",
              substrings=("full_name", "fullname", "name")),
)

USERNAME_RULE = next(r for r in FIELD_RULES if r.param_name == "USERNAME")


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_ALNUM = re.compile(r"[^A-Z0-9]+")


def normalize_key(key: str) -> str:
    """``firstName`` / ``first-name`` / ``First Name`` -> ``first_name``."""
    snake = _CAMEL_BOUNDARY.sub("_", key.strip())
    return re.sub(r"[\s\-.]+", "_", snake).lower()


def generic_param_name(key: str) -> str:
    """Deterministic Param name for an unrecognized field key."""
    name = _NON_ALNUM.sub("_", normalize_key(key).upper()).strip("_")
    if not name:
        return "FIELD"
    if name[0].isdigit():
        return f"FIELD_{name}"
    return name


@dataclass(frozen=True)
class FieldClassification:
    """A variable-bearing field and the Param it maps to."""

    field_key: str
    field_class: FieldClass
    param_name: str
    description: str
    value: str = ""
    value_source: str = "none"  # captured | extracted | observed | reconstructed | none
    aliases: tuple[str, ...] = ()  # every key that refers to this field
    selector: str | None = None
    first_index: int | None = None  # index of the first reduced action on this field

    def to_dict(self) -> dict:
        return {
            "field": self.field_key,
            "class": self.field_class.value,
            "param": self.param_name,
            "description": self.description,
            "valueSource": self.value_source,
        }


@dataclass
class _FieldDraft:
    """Mutable accumulator used while grouping evidence about one field."""

    key: str
    aliases: list[str] = field(default_factory=list)
    first_index: int | None = None
    id: str | None = None
    name: str | None = None
    placeholder: str | None = None
    selector: str | None = None
    input_type: str | None = None
    observed: str | None = None
    captured_value: str | None = None
    captured_type: str | None = None
    is_login_field: bool = False
    extracted: str | None = None
    reconstructed: str | None = None

    def absorb(self, action: ReducedAction) -> None:
        self.id = self.id or action.id
        self.name = self.name or action.name
        self.placeholder = self.placeholder or action.placeholder
        self.selector = self.selector or action.selector
        self.input_type = self.input_type or action.input_type
        if action.value is not None:
            self.observed = action.value

    def value(self) -> tuple[str, str]:
        """Pick the field's value: captured > extracted > observed > reconstructed."""
        for source, value in (
            ("captured", self.captured_value),
            ("extracted", self.extracted),
            ("observed", self.observed),
            ("reconstructed", self.reconstructed),
        ):
            if value:
                return value, source
        return "", "none"

    def match_keys(self) -> list[str]:
        """Keys the substring rules are checked against."""
        keys = [k for k in (self.id, self.name, self.placeholder) if k]
        keys.extend(a for a in self.aliases if a not in keys and a != self.selector)
        if not keys and self.selector:
            keys.append(self.selector)
        return keys


def _rule_for(draft: _FieldDraft, value: str) -> FieldRule | None:
    """Apply the classification policy in priority order."""
    input_type = (draft.captured_type or draft.input_type or "").lower()
    keys = draft.match_keys()
    haystacks = []
    for key in keys:
        for form in (key.lower(), normalize_key(key)):
            if form not in haystacks:
                haystacks.append(form)

    # (a) the capture layer said so
    if draft.is_login_field:
        if input_type == "password":
            return TYPE_RULES["password"]
        if input_type == "email" or "@" in value or any("email" in h for h in haystacks):
            return TYPE_RULES["email"]
        return USERNAME_RULE

    # (b) the element type is unambiguous
    if input_type in TYPE_RULES:
        return TYPE_RULES[input_type]

    # (c) key substrings
    for rule in FIELD_RULES:
        if any(rule.matches(h) for h in haystacks):
            return rule

    return None


# =============================================================================
# Workflow catalog
# =============================================================================

SUBMIT_LIKE = frozenset({"click:submit", "submit"})
IDENTIFIER_INPUT = frozenset({"input:identifier"})
SECRET_INPUT = frozenset({"input:secret"})
VALUE_INPUT = frozenset({"input:business", "input:generic"})
ANY_INPUT = frozenset({
    "input:identifier", "input:secret", "input:business", "input:generic",
    "input:search", "input:payment", "input:other",
})
NAVIGATE = frozenset({"navigate"})


@dataclass(frozen=True)
class WorkflowTemplate:
    """A named, ordered pattern of abstract action tokens."""

    name: str
    title: str
    description: str
    pattern: tuple[frozenset[str], ...]
    renames: dict[str, str] = field(default_factory=dict)  # canonical Param names


# Catalog order is specificity order: most specific first
WORKFLOW_TEMPLATES: tuple[WorkflowTemplate, ...] = (
    WorkflowTemplate(
        name="REGISTRATION",
        title="Account registration",
        description="Create a new account on {host}",
        pattern=(NAVIGATE, IDENTIFIER_INPUT, SECRET_INPUT, SECRET_INPUT, SUBMIT_LIKE),
        renames={"PASSWORD_2": "CONFIRM_PASSWORD"},
    ),
    WorkflowTemplate(
        name="ITEM_CREATION",
        title="Item creation",
        description="Create a new item on {host}",
        pattern=(NAVIGATE, frozenset({"click:new"}), VALUE_INPUT, VALUE_INPUT, SUBMIT_LIKE),
        renames={"FULL_NAME": "ITEM_NAME", "DESCRIPTION": "ITEM_DESCRIPTION"},
    ),
    WorkflowTemplate(
        name="CHECKOUT",
        title="Checkout",
        description="Complete a purchase on {host}",
        pattern=(NAVIGATE, VALUE_INPUT | IDENTIFIER_INPUT, frozenset({"input:payment"}), SUBMIT_LIKE),
        renames={"ADDRESS": "SHIPPING_ADDRESS", "FULL_NAME": "CARDHOLDER_NAME"},
    ),
    WorkflowTemplate(
        name="LOGIN",
        title="Login",
        description="Sign in to {host}",
        pattern=(NAVIGATE, IDENTIFIER_INPUT, SECRET_INPUT, SUBMIT_LIKE),
    ),
    WorkflowTemplate(
        name="SEARCH",
        title="Search",
        description="Search {host}",
        pattern=(NAVIGATE, frozenset({"input:search"})),
    ),
    WorkflowTemplate(
        name="DATA_ENTRY",
        title="Form entry",
        description="Fill in and submit a form on {host}",
        pattern=(NAVIGATE, ANY_INPUT, ANY_INPUT, SUBMIT_LIKE),
    ),
)


@dataclass(frozen=True)
class WorkflowMatch:
    """The template a recording matched and where."""

    template: WorkflowTemplate
    segment: int
    action_indices: tuple[int, ...]  # reduced action indices of the matched tokens

    @property
    def name(self) -> str:
        return self.template.name

    def to_dict(self) -> dict:
        return {
            "template": self.template.name,
            "segment": self.segment,
            "actions": list(self.action_indices),
        }


_SUBMIT_WORDS = re.compile(
    r"\b(submit|sign in|signin|log in|login|save|continue|next|register|sign up|signup"
    r"|confirm|place order|pay|checkout|done|create account)\b"
)
_NEW_WORDS = re.compile(r"\b(new|add|create)\b")
_SEARCH_WORDS = re.compile(r"\b(search|find|go)\b")


def click_token(action: ReducedAction) -> str:
    """Abstract a click by what its label suggests it does."""
    label = " ".join(
        normalize_key(part).replace("_", " ")
        for part in (action.text, action.id, action.name, action.selector)
        if part
    )
    if (action.input_type or "").lower() == "submit" or _SUBMIT_WORDS.search(label):
        return "click:submit"
    if _NEW_WORDS.search(label) or label.strip().startswith("+"):
        return "click:new"
    if _SEARCH_WORDS.search(label):
        return "click:search"
    return "click"


def site_name(url: str) -> str:
    """Host part of a URL, for display."""
    host = urlsplit(url).hostname if url else None
    return host or url or "the recorded site"


# =============================================================================
# Result
# =============================================================================

@dataclass(frozen=True)
class Classification:
    """Output of ``classify``: field classifications plus the matched workflow."""

    fields: tuple[FieldClassification, ...] = ()
    workflow: WorkflowMatch | None = None

    def field_for(self, action: ReducedAction) -> FieldClassification | None:
        """The classified field an action operates on, if any."""
        key = action.field_key
        if not key and action.kind in VALUE_KINDS:
            key = action.fallback_key
        if not key:
            return None
        for f in self.fields:
            if key in f.aliases:
                return f
        return None

    def by_param(self) -> dict[str, FieldClassification]:
        return {f.param_name: f for f in self.fields}

    def to_dict(self) -> dict:
        return {
            "fields": [f.to_dict() for f in self.fields],
            "workflow": self.workflow.to_dict() if self.workflow else None,
        }


# =============================================================================
# classify
# =============================================================================

def _collect_fields(reduced: ReducedRecording) -> list[_FieldDraft]:
    """Group every piece of evidence about a field under one key."""
    drafts: dict[str, _FieldDraft] = {}
    alias_to_key: dict[str, str] = {}

    def draft_for(lookup: list[str], aliases: list[str]) -> _FieldDraft:
        key = next((alias_to_key[k] for k in lookup if k in alias_to_key), lookup[0])
        draft = drafts.get(key)
        if draft is None:
            draft = drafts[key] = _FieldDraft(key=key)
        for alias in aliases:
            alias_to_key.setdefault(alias, key)
            if alias not in draft.aliases:
                draft.aliases.append(alias)
        return draft

    for index, action in enumerate(reduced.actions):
        if action.kind not in VALUE_KINDS:
            continue
        aliases = [a for a in (action.id, action.name, action.selector, action.placeholder) if a]
        draft = draft_for([action.field_key or action.fallback_key], aliases or [action.fallback_key])
        if draft.first_index is None:
            draft.first_index = index
        draft.absorb(action)

    for key, captured in reduced.captured_inputs.items():
        lookup = [k for k in dict.fromkeys((key, captured.field, f"#{key}")) if k]
        draft = draft_for(lookup, lookup[:2])
        draft.captured_value = captured.value
        draft.captured_type = captured.input_type
        draft.is_login_field = captured.is_login_field

    for key, value in reduced.extracted_inputs.items():
        draft_for([key, f"#{key}"], [key]).extracted = value

    for key, value in reduced.reconstructed_inputs.items():
        draft_for([key], [key]).reconstructed = value

    return list(drafts.values())


def _unique(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    n = 2
    while f"{name}_{n}" in taken:
        n += 1
    return f"{name}_{n}"


def _classify_fields(drafts: list[_FieldDraft]) -> list[FieldClassification]:
    fields: list[FieldClassification] = []
    taken: set[str] = set()

    for draft in drafts:
        value, source = draft.value()
        rule = _rule_for(draft, value)
        if rule is not None:
            field_class, name, description = rule.field_class, rule.param_name, rule.description
        elif value.strip():
            field_class = FieldClass.GENERIC
            name = generic_param_name(draft.key)
            description = f"Value entered in '{draft.key}'"
        else:
            continue

        name = _unique(name, taken)
        taken.add(name)
        fields.append(FieldClassification(
            field_key=draft.key,
            field_class=field_class,
            param_name=name,
            description=description,
            value=value,
            value_source=source,
            aliases=tuple(draft.aliases),
            selector=draft.selector,
            first_index=draft.first_index,
        ))

    return fields


def _input_token(f: FieldClassification | None) -> str:
    if f is None:
        return "input:other"
    if f.param_name == "CARD_NUMBER":
        return "input:payment"
    if f.param_name == "SEARCH_QUERY":
        return "input:search"
    return f"input:{f.field_class.value}"


def action_tokens(reduced: ReducedRecording, classification: Classification) -> list[str]:
    """Abstract each reduced action into the workflow vocabulary."""
    tokens = []
    for action in reduced.actions:
        if action.kind == ActionKind.NAVIGATE:
            tokens.append("navigate")
        elif action.kind == ActionKind.SUBMIT:
            tokens.append("submit")
        elif action.kind in VALUE_KINDS:
            tokens.append(_input_token(classification.field_for(action)))
        elif action.kind == ActionKind.CLICK:
            tokens.append(click_token(action))
        else:
            tokens.append(action.kind)
    return tokens


def _segments(tokens: list[str]) -> list[list[tuple[int | None, str]]]:
    """Split at navigations. The first segment opens with an implied navigate."""
    segments: list[list[tuple[int | None, str]]] = [[(None, "navigate")]]
    for index, token in enumerate(tokens):
        if token == "navigate":
            if index == 0:
                segments[0] = [(0, token)]
                continue
            segments.append([])
        segments[-1].append((index, token))
    return segments


def _match_segment(
    segment: list[tuple[int | None, str]],
    pattern: tuple[frozenset[str], ...],
) -> tuple[int | None, ...] | None:
    """Order-preserving subsequence match (greedy leftmost)."""
    matched: list[int | None] = []
    pos = 0
    for accepted in pattern:
        while pos < len(segment) and segment[pos][1] not in accepted:
            pos += 1
        if pos == len(segment):
            return None
        matched.append(segment[pos][0])
        pos += 1
    return tuple(matched)


def match_workflow(
    reduced: ReducedRecording,
    classification: Classification,
    templates: tuple[WorkflowTemplate, ...] = WORKFLOW_TEMPLATES,
) -> WorkflowMatch | None:
    """Find the first catalog template contained in some navigation segment."""
    segments = _segments(action_tokens(reduced, classification))
    for template in templates:
        for seg_index, segment in enumerate(segments):
            matched = _match_segment(segment, template.pattern)
            if matched is not None:
                return WorkflowMatch(
                    template=template,
                    segment=seg_index,
                    action_indices=tuple(i for i in matched if i is not None),
                )
    return None


def _apply_renames(
    fields: list[FieldClassification],
    match: WorkflowMatch,
    reduced: ReducedRecording,
) -> list[FieldClassification]:
    """Give fields that took part in a template match their canonical names."""
    if not match.template.renames:
        return fields

    probe = Classification(fields=tuple(fields))
    participating = set()
    for index in match.action_indices:
        f = probe.field_for(reduced.actions[index])
        if f is not None:
            participating.add(f.field_key)

    taken = {f.param_name for f in fields}
    renamed = []
    for f in fields:
        target = match.template.renames.get(f.param_name)
        if f.field_key in participating and target and target not in taken:
            taken.discard(f.param_name)
            taken.add(target)
            f = replace(f, param_name=target)
        renamed.append(f)
    return renamed


def classify(
    reduced: ReducedRecording,
    logger: "CompileLogger | None" = None,
) -> Classification:
    """Classify variable-bearing fields and match the workflow catalog.

    Fields are returned in first-seen order: fields touched by actions in
    action order, then captured, extracted and reconstructed inputs that no
    kept action refers to.

    Args:
        reduced: Output of ``reduce``.
        logger: Optional logger.

    Returns:
        Classification with one entry per variable-bearing field. A missing
        workflow match is normal.
    """
    fields = _classify_fields(_collect_fields(reduced))
    classification = Classification(fields=tuple(fields))

    match = match_workflow(reduced, classification)
    if match is not None:
        fields = _apply_renames(fields, match, reduced)
        classification = Classification(fields=tuple(fields), workflow=match)

    if logger:
        workflow = match.name if match else "none"
        logger.info(f"Classified {len(fields)} field(s), workflow: {workflow}")

    return classification
