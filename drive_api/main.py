from fastapi import FastAPI

from drive_api.api.routes import auth, folders, file, share
from drive_api.core.config import settings
from drive_api.core.logging_config import configure_logging
from drive_api.db.session import init_db


configure_logging(settings.LOG_LEVEL)

app = FastAPI(title=settings.PROJECT_NAME)


# include routers
app.include_router(auth.router)
app.include_router(folders.router)
app.include_router(file.router)
app.include_router(share.router)

# create tables if needed
init_db()


@app.get("/health")
def health():
    return {"status": "ok"}
