from moonlight.router.api.config import router as config_router
from moonlight.router.api.v1.flows import router as flows_router

routers = [config_router, flows_router]
