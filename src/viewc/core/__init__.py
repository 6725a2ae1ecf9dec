"""
Core of the viewc compiler.

Contract parsing and phase projections, the binding expression language,
template parsing and the shared template walk, slow render and the
project configuration.
"""
