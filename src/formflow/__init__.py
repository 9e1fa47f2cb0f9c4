"""
formflow: the non-visual engine of a multi-step form builder

A form is a tree of sections, pages and blocks. This package holds:
    - the immutable document tree and its add / update / remove primitives
    - the navigation condition language
    - navigation resolution (which node comes next)
    - validation (whether an answer is accepted)
    - flow graph derivation, layout and cycle detection

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Widget rendering
    - Drag-and-drop or painting
    - Theming and localisation text

Those belong to the host application. Theme and localisation data are
carried through serialization unchanged.
"""

__version__ = "0.1.0"
