"""
HTTP layer: FastAPI dependencies, routers and response schemas.
"""
