"""
Serialization helpers for form documents.

Provides JSON/YAML round-trip via the document dict representation:

    {
        "rootNode": {...},        # node tree, legacy shapes accepted
        "localizations": {...},   # carried verbatim
        "theme": {...}            # carried verbatim
    }

Node-level key handling lives in `formflow.adapters`; this module only
deals with the document envelope and the text formats.
"""
from __future__ import annotations

import copy
import json
from typing import Any, Dict, Mapping

import yaml

from formflow.adapters import (
    DocumentFormatError,
    IdFactory,
    expand_node,
    navigation_rule_from_dict,
    navigation_rule_to_dict,
    new_id,
    validation_rule_from_dict,
    validation_rule_to_dict,
)
from formflow.tree import DocumentTree, FormDocument

ROOT_KEY = "rootNode"


def tree_to_dict(tree: DocumentTree) -> Dict[str, Any]:
    return expand_node(tree.root_id, tree.nodes)


def tree_from_dict(d: Mapping[str, Any], id_factory: IdFactory = new_id) -> DocumentTree:
    return DocumentTree.from_dict(d, id_factory)


def document_to_dict(doc: FormDocument) -> Dict[str, Any]:
    return {
        ROOT_KEY: tree_to_dict(doc.tree),
        "localizations": copy.deepcopy(doc.localizations),
        "theme": copy.deepcopy(doc.theme),
    }


def document_from_dict(d: Any, id_factory: IdFactory = new_id) -> FormDocument:
    """
    Read a document dict.

    Raises:
        DocumentFormatError: when the document or its root node is not an
            object, or a node is malformed
    """
    if not isinstance(d, Mapping):
        raise DocumentFormatError(f"Document must be an object, got {type(d).__name__}")
    root = d.get(ROOT_KEY)
    if not isinstance(root, Mapping):
        raise DocumentFormatError(f"Document has no '{ROOT_KEY}' object")
    return FormDocument(
        tree=tree_from_dict(root, id_factory),
        localizations=copy.deepcopy(d.get("localizations") or {}),
        theme=copy.deepcopy(d.get("theme") or {}),
    )


def document_to_json(doc: FormDocument, indent: int | None = None) -> str:
    return json.dumps(document_to_dict(doc), indent=indent, ensure_ascii=False)


def document_from_json(s: str) -> FormDocument:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise DocumentFormatError(f"Invalid JSON document: {e}") from e
    return document_from_dict(d)


def document_to_yaml(doc: FormDocument) -> str:
    return yaml.safe_dump(document_to_dict(doc), sort_keys=False, allow_unicode=True)


def document_from_yaml(s: str) -> FormDocument:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise DocumentFormatError(f"Invalid YAML document: {e}") from e
    return document_from_dict(d)


__all__ = [
    "DocumentFormatError",
    "document_from_dict",
    "document_from_json",
    "document_from_yaml",
    "document_to_dict",
    "document_to_json",
    "document_to_yaml",
    "navigation_rule_from_dict",
    "navigation_rule_to_dict",
    "tree_from_dict",
    "tree_to_dict",
    "validation_rule_from_dict",
    "validation_rule_to_dict",
]
