from fastapi import FastAPI

from moonlight import __version__
from moonlight.router.api import routers

app = FastAPI(title="Moonlight", version=__version__)


@app.get("/")
async def hello():
    return {"message": "Moonlight is running"}


for router in routers:
    app.include_router(router)
