"""Fakes e payloads de exemplo compartilhados pelos testes."""
