#!/usr/bin/env python3
"""
Complete Pipeline Demo: Document → Edit → Analysis → Flow graph → Diagrams

Shows the full workflow:
1. Load a stored form document (JSON path on the command line, or the example)
2. Edit it through the tree primitives
3. Walk a respondent through it and validate their answers
4. Analyze the document
5. Lay out the flow graph and generate Graphviz diagrams
"""

import json
import sys

from formflow.analyzer import analyze_document
from formflow.backends import DotMode, build_flow_graph, generate_dot, save_dot_file
from formflow.debug import create_debug_logger
from formflow.examples import build_example_document
from formflow.layout import FlowLayout
from formflow.model import NodeType
from formflow.navigation import NavigationEngine
from formflow.serialization import document_from_json, document_to_json
from formflow.validation import ValidationEngine


def load_document(argv):
    if len(argv) > 1:
        with open(argv[1], encoding="utf-8") as f:
            return document_from_json(f.read())
    return build_example_document()


def main():
    log = create_debug_logger("formflow", enable_debug="--debug" in sys.argv)
    args = [a for a in sys.argv if a != "--debug"]
    doc = load_document(args)
    tree = doc.tree

    print("=" * 80)
    print("COMPLETE PIPELINE DEMO: Document → Edit → Analysis → Diagrams")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Load
    # =========================================================================
    print("\n1. LOADING DOCUMENT...")
    print(f"   ✓ Loaded form: {tree.root.display_name}")
    print(f"   ✓ Pages: {len(tree.pages())}")
    print(f"   ✓ Blocks: {len(tree.blocks())}")

    # =========================================================================
    # STEP 2: Edit
    # =========================================================================
    print("\n2. EDITING...")
    pages = tree.pages()
    if pages:
        edited = tree.add_child(pages[0].id, {
            "type": "textfield",
            "label": "Postcode",
            "fieldName": "postcode",
            "validationRules": [{"operator": "maxLength", "value": "8", "message": "Too long"}],
        })
        print(f"   ✓ Added a block to {pages[0].display_name}: {len(edited)} nodes (was {len(tree)})")
        tree = edited
        doc = doc.with_tree(tree)

    # =========================================================================
    # STEP 3: Respondent walk-through
    # =========================================================================
    print("\n3. WALKING THROUGH...")
    answers = {"name": "Ada", "age": "42", "smoker": "no", "postcode": "AB1 2CD"}
    navigation = NavigationEngine(tree, logger=log)
    validation = ValidationEngine(logger=log)
    blocks = tree.blocks()
    current = blocks[0].id if blocks else None
    for _ in range(len(tree)):
        if current is None:
            break
        block = tree.get(current)
        error = validation.first_error(block.validation_rules, answers.get(block.field_name))
        print(f"   - {block.display_name}: {error or 'ok'}")
        result = navigation.step(current, answers)
        if result.terminal or result.target is None:
            print("   ✓ Submitted")
            break
        target = tree.get(result.target)
        if result.is_page or (target is not None and target.type is NodeType.PAGE):
            inner = tree.blocks_of(result.target)
            current = inner[0].id if inner else None
        else:
            current = result.target

    # =========================================================================
    # STEP 4: Analyze
    # =========================================================================
    print("\n4. ANALYZING DOCUMENT...")
    report = analyze_document(tree)
    print(f"   ✓ Unreachable blocks: {report.unreachable_blocks}")
    print(f"   ✓ Dangling targets: {[d.target for d in report.dangling_targets]}")
    print(f"   ✓ Cycles detected: {report.has_cycles}")
    print(f"   ✓ Validation coverage: {report.validation_coverage_percent:.1f}%")

    if report.warnings:
        print(f"\n   Warnings ({len(report.warnings)}):")
        for warning in report.warnings[:5]:  # Show first 5
            print(f"      - {warning}")
        if len(report.warnings) > 5:
            print(f"      ... and {len(report.warnings) - 5} more")

    # =========================================================================
    # STEP 5: Flow graph and diagrams
    # =========================================================================
    print("\n5. GENERATING FLOW GRAPH AND DIAGRAMS...")
    layout = FlowLayout(logger=log)
    graph = layout.relayout(build_flow_graph(tree, logger=log))
    with open("form_flow.json", "w", encoding="utf-8") as f:
        json.dump(graph.to_dict(), f, indent=2)
    print(f"   ✓ Saved form_flow.json ({len(graph.nodes)} nodes, {len(graph.edges)} edges)")

    for mode in (DotMode.SIMPLE, DotMode.DETAILED, DotMode.MANAGEMENT):
        filename = f"form_{mode.value}.dot"
        save_dot_file(graph, filename, mode=mode)
        print(f"   ✓ Saved {filename}")

    with open("form_document.json", "w", encoding="utf-8") as f:
        f.write(document_to_json(doc, indent=2))
    print("   ✓ Saved form_document.json")

    print("\n6. SAMPLE DETAILED MODE OUTPUT:")
    print("-" * 80)
    lines = generate_dot(graph, mode=DotMode.DETAILED).split('\n')
    for line in lines[:20]:
        print(f"   {line}")
    if len(lines) > 20:
        print(f"   ... ({len(lines) - 20} more lines)")

    print("\n" + "=" * 80)
    print("PIPELINE COMPLETE!")
    print("\nTo visualize the diagrams:")
    print("  dot -Tpng form_simple.dot -o form_simple.png")
    print("  dot -Tpng form_detailed.dot -o form_detailed.png")
    print("  dot -Tpng form_management.dot -o form_management.png")
    print("=" * 80)


if __name__ == "__main__":
    main()
