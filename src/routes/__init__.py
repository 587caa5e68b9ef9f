"""
Rotas FastAPI.
"""
