# src/atlas_deploy/__init__.py
"""
Atlas Deploy — pipeline declarativo de entrega contínua.

Este pacote raiz define o namespace público do Atlas Deploy: um engine que
busca uma revisão de repositório, renderiza um de seus arquivos em um
objeto de configuração visível no cluster e reconcilia uma aplicação em
execução (deployment, service, route e configuração montada).

Princípios centrais:
    - O pipeline é um DAG explícito de Tasks, cada uma uma sequência de Steps
    - Steps são idempotentes: reexecutar converge para o mesmo estado externo
    - O único controle de ordem e concorrência são as arestas `runAfter`
    - Estado de execução é explícito (RunContext), nunca global

Arquitetura em alto nível:
    - core.config       → carregamento, merge e hashing de configuração
    - core.pipeline     → parâmetros, Steps, Tasks, Pipelines e contexto de run
    - core.engine       → planejamento (DAG) e scheduler de runs
    - core.traceability → Manifest de runs (histórico)
    - integrations      → colaboradores externos (fonte, resource store)
    - steps             → Steps concretos do pipeline de deploy
    - trigger / cli     → superfície de disparo de runs
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
