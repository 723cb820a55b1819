"""
Steps canônicos do Atlas Deploy, agrupados pelo sistema externo alvo:

    - workspace  → workspace.cleanup
    - source     → source.clone
    - resources  → resources.deploy-app, resources.configmap

O mapeamento nome de ação → classe fica em `catalog.default_registry()`.
"""
