# src/atlas_deploy/integrations/__init__.py
"""
Colaboradores externos do engine, especificados apenas na fronteira:

    - source    → fetch de código-fonte (sucesso/falha + revisão)
    - resources → recursos do cluster (existe / não existe / criado / atualizado)
"""
