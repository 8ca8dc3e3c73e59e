"""App — orquestração do engine de máquinas de estados.

Subpastas:
- bootstrap/: composition root (factories, inicialização, wiring)
- services/: registro de handlers, requisitos, efeitos e transições
- infra/: repositórios concretos (memória, Redis)
- protocols/: contratos de handlers e do repositório
- observability/: correlation_id e métricas via logs estruturados

Padrão: fsm modela; app orquestra; config configura; utils apoia.
"""
