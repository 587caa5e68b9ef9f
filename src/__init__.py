"""
Serviço de anexos Pipefy por CPF.
"""
