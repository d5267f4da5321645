"""Shared fixtures: small datasets and scripted language models."""
import json

import pytest

from sheet_assistant.dataset import build_snapshot

SAMPLE_HEADER = ["Location", "Date", "Action"]
SAMPLE_ROWS = [
    ["A St", "6/1/2025", "Fixed leak"],
    ["B St", "6/15/2025", "Changed filter"],
]

MAINTENANCE_HEADER = ["MMT No", "Functional Location", "Date", "Action", "Description"]
MAINTENANCE_ROWS = [
    ["MMT-1001", "387 Lemon Circle", "6/2/2025", "Replaced valve", "Leak under sink"],
    ["MMT-1002", "387 Lemon Circle", "6/20/2025", "Cleared drain", "Slow drain in kitchen"],
    ["MMT-1003", "12 Oak Street", "7/1/2025", "Replaced filter", "HVAC filter dirty"],
    ["MMT-1004", "12 Oak Street", "5/15/2025", "Fixed leak", "Roof leak after storm"],
    ["MMT-1005", "55 Pine Avenue", "2025-06-10", "Inspected unit", "Annual inspection"],
    ["MMT-1006", "55 Pine Avenue", "not a date", "Painted wall", "Scuffed hallway"],
    ["MMT-1007", "9 Elm Lane", "8/3/2024", "Replaced valve", "Dripping tap"],
    ["MMT-1008", "9 Elm Lane", "8/19/2024", "Reset breaker", "Power outage"],
    ["MMT-1009", "387 Lemon Circle", "7/7/2025", "Serviced boiler", "No hot water"],
    ["MMT-1010", "12 Oak Street", "1/5/2025", "Cleared gutter", "Gutter blocked"],
    ["MMT-1011", "55 Pine Avenue", "3/3/2025", "Replaced bulb", "Light out"],
    ["MMT-1012", "9 Elm Lane", "", "Checked alarm", "Smoke alarm beeping"],
]


class ScriptedLLM:
    """Language model double: returns queued replies in order; queued exceptions are raised."""

    model = "primary-model"
    fallback_model = "alternate-model"

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, prompt, system=None, model=None, **kwargs):
        self.calls.append({"prompt": prompt, "system": system, "model": model})
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


def plan_json(intent, filters=None, fields=None):
    return json.dumps({"filters": filters or [], "fields": fields or [], "intent": intent})


def answer_json(answer, source="records"):
    return json.dumps({"answer": answer, "source": source})


@pytest.fixture
def sample_snapshot():
    return build_snapshot(SAMPLE_HEADER, SAMPLE_ROWS, name="sample.xlsx")


@pytest.fixture
def maintenance_snapshot():
    return build_snapshot(MAINTENANCE_HEADER, MAINTENANCE_ROWS, name="mmt.xlsx")
