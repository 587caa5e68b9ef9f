"""
Serviços de domínio.
"""
