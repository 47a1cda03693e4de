"""Tests for field classification and workflow matching."""

import pytest

from compiler import FieldClass, classify, reduce
from compiler.patterns import click_token, generic_param_name, normalize_key, site_name
from compiler.reducer import ReducedAction


def _classify(recording: dict):
    return classify(reduce(recording))


def _input(field_id: str, value: str, input_type: str | None = None, ts: float = 1.0) -> dict:
    target = {"tagName": "INPUT", "id": field_id, "selector": f"#{field_id}"}
    if input_type:
        target["type"] = input_type
    return {"type": "input", "timestamp": ts, "value": value, "target": target}


def _nav(url: str = "https://example.com/form") -> dict:
    return {"type": "navigate", "timestamp": 0.0, "url": url}


def _click(text: str) -> dict:
    return {"type": "click", "timestamp": 9.0, "target": {"tagName": "BUTTON", "text": text}}


class TestFieldClassification:
    def test_login_fields_get_distinct_credential_classes(self, login_recording):
        classification = _classify(login_recording)
        by_param = classification.by_param()

        assert list(by_param) == ["USERNAME", "PASSWORD"]
        assert by_param["USERNAME"].field_class == FieldClass.IDENTIFIER
        assert by_param["PASSWORD"].field_class == FieldClass.SECRET
        assert by_param["USERNAME"].value == "alice"
        assert by_param["USERNAME"].value_source == "captured"

    def test_login_field_with_email_value(self):
        classification = _classify({
            "sessionId": "s1",
            "capturedInputs": {"login": {"value": "bob@example.com", "isLoginField": True}},
        })

        assert [f.param_name for f in classification.fields] == ["EMAIL"]
        assert classification.fields[0].field_class == FieldClass.IDENTIFIER

    def test_element_type_decides_before_key(self):
        classification = _classify({
            "sessionId": "s1",
            "actions": [_input("field1", "hunter2", input_type="password")],
        })

        assert classification.fields[0].param_name == "PASSWORD"

    @pytest.mark.parametrize("field_id, param", [
        ("firstName", "FIRST_NAME"),
        ("sellingPrice", "SELLING_PRICE"),
        ("item-qty", "QUANTITY"),
        ("q", "SEARCH_QUERY"),
        ("company_name", "COMPANY"),
    ])
    def test_business_keys(self, field_id, param):
        classification = _classify({"sessionId": "s1", "actions": [_input(field_id, "x1")]})

        assert classification.fields[0].param_name == param
        assert classification.fields[0].field_class == FieldClass.BUSINESS

    def test_unrecognized_field_with_value_is_generic(self):
        classification = _classify({"sessionId": "s1", "actions": [_input("favouriteColor", "teal")]})

        f = classification.fields[0]
        assert f.field_class == FieldClass.GENERIC
        assert f.param_name == "FAVOURITE_COLOR"

    def test_unrecognized_field_without_value_is_ignored(self):
        classification = _classify({"sessionId": "s1", "actions": [_input("favouriteColor", "")]})

        assert classification.fields == ()

    def test_field_without_locator_is_keyed_on_its_label(self):
        action = {"type": "input", "timestamp": 1.0, "value": "a@b.com",
                  "target": {"tagName": "INPUT", "text": "Work Email"}}

        classification = _classify({"sessionId": "s1", "actions": [action]})

        f = classification.fields[0]
        assert f.field_key == "Work Email"
        assert f.param_name == "EMAIL"
        assert classification.field_for(ReducedAction(kind="input", timestamp=1.0, text="Work Email")) is f

    def test_value_precedence(self):
        recording = {
            "sessionId": "s1",
            "actions": [
                {"type": "focus", "timestamp": 0.0, "target": {"id": "city"}},
                {"type": "keydown", "timestamp": 0.1, "key": "P"},
                {"type": "blur", "timestamp": 0.2, "target": {"id": "city"}},
                _input("city", "Paris", ts=0.3),
            ],
            "extractedInputs": {"city": "Porto"},
        }
        assert _classify(recording).fields[0].value == "Porto"

        recording["capturedInputs"] = {"city": {"value": "Prague"}}
        assert _classify(recording).fields[0].value == "Prague"

    def test_repeated_input_events_are_one_field(self):
        classification = _classify({
            "sessionId": "s1",
            "actions": [_input("email", "a", ts=1.0), _input("email", "a@b.co", ts=2.0)],
        })

        assert len(classification.fields) == 1
        assert classification.fields[0].value == "a@b.co"

    def test_name_collisions_are_suffixed(self):
        classification = _classify({
            "sessionId": "s1",
            "actions": [_input("price_a", "1"), _input("price_b", "2")],
        })

        assert [f.param_name for f in classification.fields] == ["PRICE", "PRICE_2"]


class TestWorkflowMatching:
    def test_login(self, login_recording):
        classification = _classify(login_recording)

        assert classification.workflow.name == "LOGIN"
        assert classification.workflow.action_indices == (0, 2, 3, 4)

    def test_item_creation_renames_fields(self, item_recording):
        classification = _classify(item_recording)

        assert classification.workflow.name == "ITEM_CREATION"
        assert [f.param_name for f in classification.fields] == ["ITEM_NAME", "SELLING_PRICE"]

    def test_registration_confirms_password(self):
        classification = _classify({
            "sessionId": "s1",
            "url": "https://example.com/signup",
            "actions": [
                _nav("https://example.com/signup"),
                _input("email", "new@example.com", input_type="email"),
                _input("password", "pw-1", input_type="password"),
                _input("password_confirm", "pw-1", input_type="password"),
                _click("Create account"),
            ],
        })

        assert classification.workflow.name == "REGISTRATION"
        assert [f.param_name for f in classification.fields] == ["EMAIL", "PASSWORD", "CONFIRM_PASSWORD"]

    def test_search_without_explicit_navigation(self):
        classification = _classify({
            "sessionId": "s1",
            "url": "https://example.com",
            "actions": [_input("q", "blue mug", input_type="search")],
        })

        assert classification.workflow.name == "SEARCH"
        assert classification.workflow.action_indices == (0,)

    def test_no_match_is_normal(self):
        classification = _classify({
            "sessionId": "s1",
            "actions": [_nav(), _click("Help")],
        })

        assert classification.workflow is None

    def test_match_in_later_segment(self, login_recording):
        login_recording["actions"] = [
            _nav("https://app.example.com/"),
            _click("About"),
            *login_recording["actions"],
        ]

        classification = _classify(login_recording)

        assert classification.workflow.name == "LOGIN"
        assert classification.workflow.segment == 1


class TestHelpers:
    @pytest.mark.parametrize("key", ["firstName", "first-name", "First Name", "first_name"])
    def test_normalize_key(self, key):
        assert normalize_key(key) == "first_name"

    @pytest.mark.parametrize("key, name", [
        ("shippingNotes", "SHIPPING_NOTES"),
        ("#billing.zip", "BILLING_ZIP"),
        ("2fa-code", "FIELD_2FA_CODE"),
        ("!!!", "FIELD"),
    ])
    def test_generic_param_name(self, key, name):
        assert generic_param_name(key) == name

    @pytest.mark.parametrize("text, token", [
        ("Sign in", "click:submit"),
        ("Place order", "click:submit"),
        ("+ New Item", "click:new"),
        ("Add product", "click:new"),
        ("Search", "click:search"),
        ("Help", "click"),
    ])
    def test_click_token(self, text, token):
        assert click_token(ReducedAction(kind="click", timestamp=0.0, text=text)) == token

    def test_site_name(self):
        assert site_name("https://shop.example.com/a?b=c") == "shop.example.com"
        assert site_name("") == "the recorded site"
