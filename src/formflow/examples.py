"""
Example form document used by tests and demos.

Builds a small health-intake form in stored-document shape, mixing the
legacy layouts an editor produces over time: pages typed "set" and
"page", children under "items" and "nodes", and one bare id reference.

Flow:
    About you: name -> age
        age >= 18  -> Adult questions
        otherwise  -> Guardian
    Adult questions: smoker
        smoker == "yes" -> cigarettes per day -> submit
        otherwise       -> submit
    Guardian: guardian email -> submit
"""
import copy
from typing import Any, Dict

from formflow.serialization import document_from_dict
from formflow.tree import FormDocument

_EXAMPLE: Dict[str, Any] = {
    "rootNode": {
        "uuid": "root",
        "type": "section",
        "name": "Health intake",
        "items": [
            {
                "uuid": "page-about",
                "type": "set",
                "name": "About you",
                "items": [
                    {
                        "uuid": "blk-name",
                        "type": "textfield",
                        "label": "Your name",
                        "fieldName": "name",
                        "validationRules": [
                            {"operator": "isNotEmpty", "message": "Please enter your name"},
                            {"operator": "maxLength", "value": "80", "message": "Name is too long"},
                        ],
                    },
                    {
                        "uuid": "blk-age",
                        "type": "textfield",
                        "label": "Your age",
                        "fieldName": "age",
                        "validationRules": [
                            {"operator": "isNumber", "message": "Age must be a number"},
                            {"operator": "<", "value": "0", "message": "Age cannot be negative"},
                            {
                                "operator": ">",
                                "value": "110",
                                "message": "Please double-check your age",
                                "severity": "warning",
                            },
                        ],
                        "navigationRules": [
                            {"condition": 'age >= "18"', "target": "page-adult", "isPage": True},
                            {
                                "condition": "true",
                                "target": "page-guardian",
                                "isPage": True,
                                "isDefault": True,
                            },
                        ],
                    },
                ],
            },
            {
                "uuid": "page-adult",
                "type": "page",
                "name": "Adult questions",
                "items": [
                    {
                        "uuid": "blk-smoker",
                        "type": "radio",
                        "label": "Do you smoke?",
                        "fieldName": "smoker",
                        "options": ["yes", "no"],
                        "validationRules": [
                            {"operator": "in", "value": ["yes", "no"], "message": "Pick yes or no"},
                        ],
                        "navigationRules": [
                            {"condition": 'smoker == "yes"', "target": "blk-cigarettes"},
                            {"condition": "true", "target": "submit", "isDefault": True},
                        ],
                    },
                    {
                        "uuid": "blk-cigarettes",
                        "type": "textfield",
                        "label": "Cigarettes per day",
                        "fieldName": "cigarettes",
                        "validationRules": [
                            {
                                "operator": "between",
                                "value": ["1", "100"],
                                "message": "Enter a number between 1 and 100",
                                "condition": 'smoker == "yes"',
                            },
                        ],
                        "navigationRules": [
                            {"condition": "true", "target": "submit", "isDefault": True},
                        ],
                    },
                ],
            },
        ],
        "nodes": [
            {
                "uuid": "page-guardian",
                "type": "set",
                "name": "Guardian",
                "nodes": [
                    {
                        "uuid": "blk-guardian-email",
                        "type": "email",
                        "label": "Guardian email",
                        "fieldName": "guardian_email",
                        "validationRules": [
                            {"operator": "isEmail", "message": "Enter a valid email address"},
                        ],
                        "navigationRules": [
                            {"condition": "true", "target": "submit", "isDefault": True},
                        ],
                    },
                ],
            },
            "library-consent-block",
        ],
    },
    "localizations": {"en": {"submit": "Send"}},
    "theme": {"primaryColor": "#2a6f97"},
}


def example_document_dict() -> Dict[str, Any]:
    """A fresh copy of the example in stored-document shape."""
    return copy.deepcopy(_EXAMPLE)


def build_example_document() -> FormDocument:
    return document_from_dict(example_document_dict())
