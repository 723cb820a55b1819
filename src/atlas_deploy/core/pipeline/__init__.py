# src/atlas_deploy/core/pipeline/__init__.py
"""
Modelo declarativo do pipeline.

Este pacote define parâmetros, o protocolo de Step, Tasks (templates),
PipelineTasks/Pipelines (DAG validado em tempo de definição), o contexto
explícito de execução e o registro de ações de Step.
"""
