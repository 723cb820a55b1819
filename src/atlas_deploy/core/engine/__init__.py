# src/atlas_deploy/core/engine/__init__.py
"""
Engine de execução do Atlas Deploy.

    - planner   → validação do DAG e ordem topológica determinística
    - scheduler → execução de runs (prontidão, paralelismo, skip, cancelamento)
"""
