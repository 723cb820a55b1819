# src/atlas_deploy/core/__init__.py
"""
Core do Atlas Deploy.

Este pacote contém o engine de orquestração, independente dos
colaboradores externos concretos (VCS, API de recursos do cluster).

Componentes principais:
    - config       → resolução de configuração (merge, validação estrutural, hashing)
    - pipeline     → parâmetros, protocolo de Step, Task, Pipeline e RunContext
    - engine       → planejamento (DAG) e Run Scheduler
    - traceability → Manifest e Event Log das runs
    - workspace    → área de staging compartilhada de uma run

Limites explícitos:
    - Não conhece detalhes de git ou da API do cluster
    - Não define Steps concretos de deploy
"""
