"""Steps que atuam sobre o controle de versão."""
