"""Shared fixtures for all tests."""

from __future__ import annotations

import copy

import pytest

from insurance_forms.schema import parse_forms

_HEALTH_FORM = {
    "formId": "health_insurance_application",
    "title": "Health Insurance Application",
    "fields": [
        {
            "id": "personal_info",
            "label": "Personal Information",
            "type": "group",
            "fields": [
                {"id": "name", "label": "Full Name", "type": "text", "required": True},
                {"id": "dob", "label": "Date of Birth", "type": "date"},
                {"id": "age", "label": "Age", "type": "text"},
                {
                    "id": "seniorDiscount",
                    "label": "Apply senior discount?",
                    "type": "radio",
                    "options": ["Yes", "No"],
                    "visibility": {"dependsOn": "age", "condition": "greaterThanOrEqual", "value": "65"},
                },
            ],
        },
        {
            "id": "address",
            "label": "Address",
            "type": "group",
            "fields": [
                {"id": "country", "label": "Country", "type": "select", "options": ["USA", "Canada"]},
                {
                    "id": "state",
                    "label": "State",
                    "type": "select",
                    "dynamicOptions": {"dependsOn": "country", "endpoint": "/api/getStates", "method": "GET"},
                },
            ],
        },
        {"id": "smoker", "label": "Do you smoke?", "type": "radio", "options": ["Yes", "No"]},
        {
            "id": "smoking_details",
            "label": "Smoking Details",
            "type": "group",
            "visibility": {"dependsOn": "smoker", "condition": "equals", "value": "Yes"},
            "fields": [
                {"id": "packs_per_day", "label": "Packs per day", "type": "text", "required": True},
                {
                    "id": "quit_plan",
                    "label": "Planning to quit?",
                    "type": "radio",
                    "options": ["Yes", "No"],
                    "visibility": {"dependsOn": "packs_per_day", "condition": "exists"},
                },
            ],
        },
    ],
}


@pytest.fixture()
def health_form_payload() -> dict:
    """A raw single-form schema document, as served by the forms backend."""
    return copy.deepcopy(_HEALTH_FORM)


@pytest.fixture()
def health_forms(health_form_payload):
    return parse_forms([health_form_payload])


@pytest.fixture()
def country_state_forms():
    """Minimal country -> state dependency."""
    return parse_forms([{
        "formId": "f1",
        "title": "Location",
        "fields": [
            {"id": "country", "label": "Country", "type": "select", "options": ["US", "IN"]},
            {
                "id": "state",
                "label": "State",
                "type": "select",
                "dynamicOptions": {"dependsOn": "country", "endpoint": "/states", "method": "get"},
            },
        ],
    }])
