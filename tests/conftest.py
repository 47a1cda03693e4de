"""Shared fixtures: sample recordings and scripted analysis services."""

import asyncio
import json

import pytest

from compiler import MessageType, ServiceMessage


LOGIN_URL = "https://app.example.com/login"


def make_login_recording() -> dict:
    """A user opens the login page, types credentials and presses Sign in."""
    return {
        "sessionId": "sess-login",
        "url": LOGIN_URL,
        "title": "Sign in",
        "startTime": 1000.0,
        "endTime": 1012.5,
        "viewport": {"width": 1280, "height": 800, "deviceScaleFactor": 2},
        "userAgent": "Mozilla/5.0 (Macintosh)",
        "actions": [
            {"type": "navigate", "timestamp": 1000.0, "url": LOGIN_URL},
            {"type": "focus", "timestamp": 1001.0,
             "target": {"tagName": "INPUT", "id": "username", "selector": "#username"}},
            {"type": "click", "timestamp": 1001.1,
             "target": {"tagName": "INPUT", "id": "username", "selector": "#username"}},
            {"type": "input", "timestamp": 1002.0, "value": "alice",
             "target": {"tagName": "INPUT", "id": "username", "selector": "#username", "type": "text"}},
            {"type": "blur", "timestamp": 1003.0,
             "target": {"tagName": "INPUT", "id": "username", "selector": "#username"}},
            {"type": "input", "timestamp": 1004.0, "value": "s3cret!",
             "target": {"tagName": "INPUT", "id": "password", "selector": "#password", "type": "password"}},
            {"type": "click", "timestamp": 1005.0,
             "target": {"tagName": "BUTTON", "selector": "form > button", "text": "Sign in", "type": "submit"}},
        ],
        "domSnapshots": [
            {"timestamp": 1000.0, "url": LOGIN_URL, "title": "Sign in", "html": "<html>login form</html>"},
            {"timestamp": 1006.0, "url": "https://app.example.com/home", "title": "Home",
             "html": "<html>dashboard</html>"},
        ],
        "console": {},
        "network": {
            "r1": {"url": "https://app.example.com/api/v1/session", "method": "POST", "status": 200},
        },
        "capturedInputs": {
            "username": {"field": "username", "value": "alice", "type": "text", "isLoginField": True},
            "password": {"field": "password", "value": "s3cret!", "type": "password", "isLoginField": True},
        },
    }


def make_item_recording() -> dict:
    """A user opens an inventory page, creates an item and saves it."""
    url = "https://shop.example.com/items"
    return {
        "sessionId": "sess-item",
        "url": url,
        "title": "Items",
        "actions": [
            {"type": "navigate", "timestamp": 1.0, "url": url},
            {"type": "click", "timestamp": 2.0,
             "target": {"tagName": "BUTTON", "selector": "button.primary", "text": "+ New Item"}},
            {"type": "input", "timestamp": 3.0, "value": "Blue Mug",
             "target": {"tagName": "INPUT", "id": "name", "selector": "#name", "type": "text"}},
            {"type": "input", "timestamp": 4.0, "value": "12.50",
             "target": {"tagName": "INPUT", "id": "selling_price", "selector": "#selling_price"}},
            {"type": "click", "timestamp": 5.0,
             "target": {"tagName": "BUTTON", "selector": "button.save", "text": "Save"}},
        ],
    }


@pytest.fixture
def login_recording() -> dict:
    return make_login_recording()


@pytest.fixture
def item_recording() -> dict:
    return make_item_recording()


@pytest.fixture
def recording_file(tmp_path, login_recording):
    path = tmp_path / "login.json"
    path.write_text(json.dumps(login_recording), encoding="utf-8")
    return path


# =============================================================================
# Scripted analysis services
# =============================================================================

class ScriptedService:
    """Replays a fixed list of messages, then optionally raises."""

    def __init__(
        self,
        messages: list[ServiceMessage],
        delay: float = 0.0,
        error: Exception | None = None,
    ):
        self.messages = messages
        self.delay = delay
        self.error = error
        self.prompts: list[str] = []
        self.closed = False

    async def query(self, prompt: str):
        self.prompts.append(prompt)
        try:
            for message in self.messages:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield message
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


def result(text: str, subtype: str = "success") -> ServiceMessage:
    return ServiceMessage(MessageType.RESULT, text, subtype=subtype)


def model_response(**overrides) -> str:
    """A typical model answer for the login recording, with literals left in."""
    data = {
        "name": "Log in to the example app",
        "description": "Sign in with a username and password",
        "url": LOGIN_URL,
        "params": [
            {"name": "USERNAME", "description": "Account username", "default": "alice"},
            {"name": "PASSWORD", "description": "Account password"},
        ],
        "steps": [
            {"name": "Open login page", "action": "navigate", "selector": None,
             "instruction": f"Go to {LOGIN_URL}", "snippet": f"await page.goto('{LOGIN_URL}');"},
            {"name": "Enter username", "action": "input", "selector": "#username",
             "instruction": "Type alice into the username field",
             "snippet": "await page.fill('#username', 'alice');"},
            {"name": "Enter password", "action": "input", "selector": "#password",
             "ai_instruction": "Type the password",
             "snippet": "await page.fill('#password', '{{password}}');"},
            {"name": "Sign in", "action": "click", "selector": "form > button",
             "instruction": "Click Sign in", "snippet": "await page.click('form > button');"},
        ],
    }
    data.update(overrides)
    return "Here is the Intent Spec:\n```json\n" + json.dumps(data, indent=2) + "\n```"


@pytest.fixture
def good_service() -> ScriptedService:
    return ScriptedService([
        ServiceMessage(MessageType.SYSTEM, "init", subtype="init"),
        ServiceMessage(MessageType.ASSISTANT, "Looking at the recording..."),
        result(model_response()),
    ])


@pytest.fixture
def failing_service() -> ScriptedService:
    return ScriptedService([ServiceMessage(MessageType.USER, "tool output")])
