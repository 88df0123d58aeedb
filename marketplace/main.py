import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api.v1 import index
from marketplace.api.v1 import auth
from marketplace.api.v1 import user
from marketplace.api.v1 import product
from marketplace.api.v1 import order
from marketplace.api.v1 import rfq
from marketplace.api.v1 import certification
from marketplace.api.v1 import notification

from marketplace.core.config import settings
from marketplace.core.errors import register_exception_handlers
from marketplace.core.logging import setup_logging

setup_logging()

app = FastAPI(title=settings.app_name)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routes
app.include_router(index.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(user.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(product.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(order.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(rfq.router, prefix="/api/v1/rfq", tags=["RFQ"])
app.include_router(certification.router,
                   prefix="/api/v1/certifications", tags=["Certifications"])
app.include_router(notification.router,
                   prefix="/api/v1/notifications", tags=["Notifications"])

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
