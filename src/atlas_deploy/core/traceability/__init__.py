# src/atlas_deploy/core/traceability/__init__.py
"""
Rastreabilidade de runs: Manifest v1 com estado por task e Event Log ordenado.
"""
