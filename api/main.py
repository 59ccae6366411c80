from fastapi import FastAPI

from api.routes import router

app = FastAPI(
    title="Database Connection Status API",
    version="0.1.0",
    description="Read-only view of the connections registered by nickname",
)
app.include_router(router)
